import threading

import pytest

from meterkit.labels import AppLabel, Labels, ThreadLabel

KEYS = ("abc", "xyz")


@pytest.fixture(autouse=True)
def clean_labels():
    for key in KEYS:
        AppLabel.unset(key)
        ThreadLabel.unset(key)
    yield
    for key in KEYS:
        AppLabel.unset(key)
        ThreadLabel.unset(key)


def test_context_labels():
    AppLabel.set("abc", "456")
    ThreadLabel.set("abc", "123")
    assert Labels().lookup("abc") == "123"

    ThreadLabel.unset("abc")
    assert Labels().lookup("abc") == "456"

    AppLabel.unset("abc")
    assert Labels().lookup("abc") is None


def test_labels_from_pairs():
    labels = Labels({"abc": "789", "xyz": "123"})
    assert labels.lookup("abc") == "789"
    assert labels.lookup("xyz") == "123"


def test_doc_example():
    labels = Labels({"a": "1", "b": "2"})
    assert labels.lookup("a") == "1"
    assert labels.lookup("b") == "2"
    assert labels.lookup("c") is None


def test_value_labels():
    labels = Labels({"abc": "789"})
    assert labels.lookup("abc") == "789"

    AppLabel.set("abc", "456")
    assert labels.lookup("abc") == "789"

    ThreadLabel.set("abc", "123")
    assert labels.lookup("abc") == "789"


def test_value_labels_fall_back_to_context():
    AppLabel.set("xyz", "app")
    labels = Labels({"abc": "789"})
    assert labels.lookup("xyz") == "app"


def test_saved_context_ignores_later_changes():
    AppLabel.set("abc", "456")
    ThreadLabel.set("xyz", "123")
    labels = Labels({})
    labels.save_context()

    AppLabel.set("abc", "changed")
    ThreadLabel.unset("xyz")

    assert labels.lookup("abc") == "456"
    assert labels.lookup("xyz") == "123"


def test_saved_context_priority():
    AppLabel.set("abc", "456")
    ThreadLabel.set("abc", "123")
    labels = Labels({"xyz": "789"})
    labels.save_context()
    assert labels.lookup("abc") == "123"
    assert labels.lookup("xyz") == "789"
    assert labels.into_map() == {"abc": "123", "xyz": "789"}


def test_into_map_without_values():
    AppLabel.set("abc", "456")
    AppLabel.set("xyz", "app")
    ThreadLabel.set("abc", "123")
    assert Labels().into_map() == {"abc": "123", "xyz": "app"}


def test_into_map_value_labels_win():
    AppLabel.set("abc", "456")
    ThreadLabel.set("abc", "123")
    assert Labels({"abc": "789"}).into_map() == {"abc": "789"}


def test_thread_labels_are_thread_local():
    ThreadLabel.set("abc", "123")
    seen = []

    def worker():
        seen.append(ThreadLabel.get("abc"))
        ThreadLabel.set("abc", "other")
        seen.append(ThreadLabel.get("abc"))

    thread = threading.Thread(target=worker)
    thread.start()
    thread.join()

    assert seen == [None, "other"]
    assert ThreadLabel.get("abc") == "123"


def test_app_labels_are_shared_between_threads():
    seen = []

    def worker():
        AppLabel.set("abc", "shared")
        seen.append(AppLabel.get("abc"))

    thread = threading.Thread(target=worker)
    thread.start()
    thread.join()
    assert seen == ["shared"]
    assert AppLabel.get("abc") == "shared"


def test_unset_missing_key_is_harmless():
    AppLabel.unset("abc")
    ThreadLabel.unset("abc")
    assert AppLabel.get("abc") is None
    assert ThreadLabel.get("abc") is None