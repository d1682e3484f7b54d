"""Tests for ResponsiblePartyResolver."""

import pytest

from _support import GROUP_ID
from watch_spine.core.errors import ValidationError
from watch_spine.store import MemorySubjectStore
from watch_spine.watch import SETTING_KEY, ResponsiblePartyResolver, is_valid_group_id

OTHER_GROUP = "C" + "z" * 25


class TestGroupIdFormat:
    """Test group id validation."""

    @pytest.mark.parametrize("value", [GROUP_ID, "C" + "a" * 20, "C_-" + "9" * 18])
    def test_valid(self, value):
        assert is_valid_group_id(value)

    @pytest.mark.parametrize("value", ["", None, "U" + "a" * 30, "C" + "a" * 19, "Cabc def" + "a" * 20])
    def test_invalid(self, value):
        assert not is_valid_group_id(value)

    def test_zero_width_space_ignored(self):
        assert is_valid_group_id(f"​{GROUP_ID}​")


class TestResolve:
    """Test configured-then-stored resolution."""

    def test_configured_wins(self):
        store = MemorySubjectStore()
        store.put_setting(SETTING_KEY, OTHER_GROUP)
        assert ResponsiblePartyResolver(store, GROUP_ID).resolve() == GROUP_ID

    def test_stored_used_when_not_configured(self):
        store = MemorySubjectStore()
        store.put_setting(SETTING_KEY, OTHER_GROUP)
        assert ResponsiblePartyResolver(store).resolve() == OTHER_GROUP

    def test_malformed_configured_falls_back(self):
        store = MemorySubjectStore()
        store.put_setting(SETTING_KEY, OTHER_GROUP)
        assert ResponsiblePartyResolver(store, "not-a-group").resolve() == OTHER_GROUP

    def test_nothing_configured(self):
        assert ResponsiblePartyResolver(MemorySubjectStore()).resolve() is None

    def test_malformed_stored_ignored(self):
        store = MemorySubjectStore()
        store.put_setting(SETTING_KEY, "garbage")
        assert ResponsiblePartyResolver(store).resolve() is None


class TestSetAndClear:
    """Test persisting the stored group id."""

    def test_set_active(self):
        store = MemorySubjectStore()
        resolver = ResponsiblePartyResolver(store)
        assert resolver.set_active(f" {GROUP_ID}​") == GROUP_ID
        assert store.get_setting(SETTING_KEY) == GROUP_ID

    def test_set_active_rejects_malformed(self):
        resolver = ResponsiblePartyResolver(MemorySubjectStore())
        with pytest.raises(ValidationError):
            resolver.set_active("U123")

    def test_clear(self):
        store = MemorySubjectStore()
        resolver = ResponsiblePartyResolver(store)
        resolver.set_active(GROUP_ID)
        resolver.clear()
        assert resolver.resolve() is None
