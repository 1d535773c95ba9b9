"""Key/value labels giving metrics extra context at the thread and application level."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from types import MappingProxyType
from typing import Optional

__all__ = ["ThreadLabel", "AppLabel", "Labels"]

_EMPTY: Mapping[str, str] = MappingProxyType({})


def _with(pairs: Mapping[str, str], key: str, value: str) -> Mapping[str, str]:
    updated = dict(pairs)
    updated[key] = value
    return MappingProxyType(updated)


def _without(pairs: Mapping[str, str], key: str) -> Mapping[str, str]:
    if key not in pairs:
        return pairs
    updated = dict(pairs)
    del updated[key]
    return MappingProxyType(updated) if updated else _EMPTY


_app_lock = threading.Lock()
_app_labels: Mapping[str, str] = _EMPTY
_thread_state = threading.local()


def _thread_labels() -> Mapping[str, str]:
    return getattr(_thread_state, "pairs", _EMPTY)


def _app_snapshot() -> Mapping[str, str]:
    with _app_lock:
        return _app_labels


class ThreadLabel:
    """Labels of the current thread; looked up before application labels."""

    @staticmethod
    def get(key: str) -> Optional[str]:
        """Return the thread's value for ``key``, if set."""
        return _thread_labels().get(key)

    @staticmethod
    def set(key: str, value: str) -> None:
        """Set a value for the thread, replacing any previous one."""
        _thread_state.pairs = _with(_thread_labels(), key, value)

    @staticmethod
    def unset(key: str) -> None:
        """Remove a thread value; has no effect if the key was not set."""
        _thread_state.pairs = _without(_thread_labels(), key)


class AppLabel:
    """Application-wide labels with the lowest lookup priority."""

    @staticmethod
    def get(key: str) -> Optional[str]:
        """Return the application's value for ``key``, if set."""
        return _app_snapshot().get(key)

    @staticmethod
    def set(key: str, value: str) -> None:
        """Set a value for the whole application, replacing any previous one."""
        global _app_labels
        with _app_lock:
            _app_labels = _with(_app_labels, key, value)

    @staticmethod
    def unset(key: str) -> None:
        """Remove an application value; has no effect if the key was not set."""
        global _app_labels
        with _app_lock:
            _app_labels = _without(_app_labels, key)


def _lookup_current_context(key: str) -> Optional[str]:
    value = ThreadLabel.get(key)
    return value if value is not None else AppLabel.get(key)


class Labels:
    """Labels carried from the application to metric outputs.

    Holds optional one-off value labels and, once ``save_context`` is called,
    snapshots of the thread and application labels at that moment.
    """

    def __init__(self, pairs: Optional[Mapping[str, str]] = None) -> None:
        self._scopes: list[Mapping[str, str]] = []
        if pairs is not None:
            self._scopes.append(MappingProxyType(dict(pairs)))

    def __repr__(self) -> str:
        return f"Labels({[dict(scope) for scope in self._scopes]!r})"

    def save_context(self) -> None:
        """Capture current thread and application labels, e.g. before queueing."""
        self._scopes.append(_thread_labels())
        self._scopes.append(_app_snapshot())

    def lookup(self, key: str) -> Optional[str]:
        """Find a label value in value labels, then saved or current context."""
        if not self._scopes:
            return _lookup_current_context(key)
        if len(self._scopes) == 1:
            value = self._scopes[0].get(key)
            return value if value is not None else _lookup_current_context(key)
        for scope in self._scopes:
            value = scope.get(key)
            if value is not None:
                return value
        return None

    def into_map(self) -> dict[str, str]:
        """Return every visible label as a dict, higher priority values winning."""
        result: dict[str, str] = {}
        if len(self._scopes) <= 1:
            result.update(_app_snapshot())
            result.update(_thread_labels())
            if self._scopes:
                result.update(self._scopes[0])
        else:
            for scope in reversed(self._scopes):
                result.update(scope)
        return result