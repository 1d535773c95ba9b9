"""Define metrics, aggregate them into statistics and dispatch them to user-provided targets."""

__version__ = "0.1.0"

__all__ = [
    "atomic",
    "attributes",
    "cache",
    "clock",
    "input",
    "labels",
    "lru_cache",
    "multi",
]