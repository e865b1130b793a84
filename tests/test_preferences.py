"""
Tests for SQLite-backed preference storage.
"""
import pytest

from marketsync.preferences import LAST_TAB, PERSIST_SESSION, PreferenceStore


@pytest.fixture
def prefs(tmp_path):
    store = PreferenceStore(f"sqlite:///{tmp_path / 'prefs.db'}")
    yield store
    store.close()


class TestPreferenceStore:

    def test_missing_key_returns_default(self, prefs):
        assert prefs.get(LAST_TAB) is None
        assert prefs.get(LAST_TAB, "marketplace") == "marketplace"

    def test_set_and_get_json_values(self, prefs):
        prefs.set(LAST_TAB, "community")
        prefs.set(PERSIST_SESSION, True)
        prefs.set("filters", {"make": "Porsche", "years": [1990, 1998]})

        assert prefs.get(LAST_TAB) == "community"
        assert prefs.get(PERSIST_SESSION) is True
        assert prefs.get("filters") == {"make": "Porsche", "years": [1990, 1998]}

    def test_overwrite(self, prefs):
        prefs.set(LAST_TAB, "events")
        prefs.set(LAST_TAB, "profile")
        assert prefs.get(LAST_TAB) == "profile"

    def test_remove(self, prefs):
        prefs.set(LAST_TAB, "events")
        assert prefs.remove(LAST_TAB) is True
        assert prefs.remove(LAST_TAB) is False
        assert prefs.get(LAST_TAB) is None

    def test_clear(self, prefs):
        prefs.set("a", 1)
        prefs.set("b", 2)
        assert prefs.clear() == 2
        assert prefs.get("a") is None

    def test_survives_reopen(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'prefs.db'}"
        first = PreferenceStore(url)
        first.set(LAST_TAB, "events")
        first.close()

        second = PreferenceStore(url)
        assert second.get(LAST_TAB) == "events"
        second.close()
