"""
Unit Tests: Ownership Registry
==============================
Covers:
  1. label filter keys are lower-cased and validated before any runtime call
  2. containers without the canary are never listed
  3. inspect of an unowned id reports not found
  4. claimed_ranges covers stopped rooms and skips unreadable labels
"""

import pytest

from room_commander.errors import InvalidLabelError, RoomNotFoundError
from room_commander.labels import CANARY_KEY, CANARY_VALUE, EPR_KEY, NAME_KEY
from room_commander.models import PortRange
from room_commander.registry import RoomRegistry, normalize_label_filter


def _owned(name, epr, **extra):
    labels = {CANARY_KEY: CANARY_VALUE, NAME_KEY: name, EPR_KEY: epr}
    labels.update(extra)
    return labels


class TestNormalizeLabelFilter:

    def test_valid_keys_pass_through(self):
        assert normalize_label_filter({"team": "Blue"}) == {"team": "Blue"}

    @pytest.mark.parametrize("key", ["Team", "TEAM", "team name"])
    def test_rejects_uppercase_and_spaces(self, key):
        with pytest.raises(InvalidLabelError):
            normalize_label_filter({key: "blue"})

    def test_empty(self):
        assert normalize_label_filter(None) == {}

    def test_rejects_bad_key(self):
        with pytest.raises(InvalidLabelError) as exc:
            normalize_label_filter({"bad key": "x"})
        assert exc.value.key == "bad key"
        assert exc.value.status_code == 400


class TestRoomRegistry:

    def test_invalid_filter_never_reaches_runtime(self, runtime):
        registry = RoomRegistry(runtime)
        with pytest.raises(InvalidLabelError):
            registry.list({"team!": "blue"})
        assert runtime.calls == []

    def test_foreign_containers_hidden(self, runtime):
        runtime.add_foreign("postgres")
        runtime.add_foreign("impostor", labels={CANARY_KEY: "someone-else"})
        mine = runtime.add_foreign("room-a", labels=_owned("a", "59000-59004"), running=False)

        units = RoomRegistry(runtime).list()
        assert [u.id for u in units] == [mine]

    def test_list_sends_canary_filter(self, runtime):
        RoomRegistry(runtime).list({"team": "blue"})
        op, filters = runtime.calls[0]
        assert op == "list"
        assert f"{CANARY_KEY}={CANARY_VALUE}" in filters
        assert "room_commander.x-label.team=blue" in filters

    def test_label_filter(self, runtime):
        blue = runtime.add_foreign(
            "room-a", labels=_owned("a", "59000-59004", **{"room_commander.x-label.team": "blue"}))
        runtime.add_foreign(
            "room-b", labels=_owned("b", "59005-59009", **{"room_commander.x-label.team": "red"}))

        units = RoomRegistry(runtime).list({"team": "blue"})
        assert [u.id for u in units] == [blue]

    def test_inspect_unowned_is_not_found(self, runtime):
        foreign = runtime.add_foreign("postgres")
        with pytest.raises(RoomNotFoundError):
            RoomRegistry(runtime).inspect(foreign)

    def test_inspect_unknown_is_not_found(self, runtime):
        with pytest.raises(RoomNotFoundError):
            RoomRegistry(runtime).inspect("does-not-exist")

    def test_find_by_name(self, runtime):
        mine = runtime.add_foreign("room-a", labels=_owned("a", "59000-59004"))
        registry = RoomRegistry(runtime)
        assert registry.find_by_name("a").id == mine
        assert registry.name_in_use("a")
        assert not registry.name_in_use("b")

    def test_claimed_ranges(self, runtime):
        runtime.add_foreign("room-a", labels=_owned("a", "59000-59004"), running=True)
        runtime.add_foreign("room-b", labels=_owned("b", "59010-59019"), running=False)
        runtime.add_foreign("room-c", labels=_owned("c", "garbage"))
        runtime.add_foreign("other", labels={EPR_KEY: "59020-59029"})

        ranges = RoomRegistry(runtime).claimed_ranges()
        assert sorted(ranges, key=lambda r: r.start) == [
            PortRange(start=59000, end=59004),
            PortRange(start=59010, end=59019),
        ]
