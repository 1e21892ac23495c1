import json

import pytest

from bladeoperator.faults import (
    DEFAULT_HOOK_POINTS,
    FaultStore,
    InjectMessage,
)


def test_to_dict_uses_wire_keys():
    message = InjectMessage(methods=["read"], path="/home", delay=1000, percent=60, errno=28)
    assert set(message.to_dict()) == {"methods", "path", "delay", "percent", "random", "errno"}
    assert message.to_dict()["delay"] == 1000


def test_round_trip_through_json():
    message = InjectMessage(
        methods=["read", "write"], path="/data", delay=5, percent=50, random=True, errno=0
    )
    decoded = InjectMessage.from_dict(json.loads(json.dumps(message.to_dict())))
    assert decoded == message


def test_from_dict_defaults():
    assert InjectMessage.from_dict({}) == InjectMessage()


@pytest.mark.parametrize(
    "data",
    [
        [],
        {"methods": "read"},
        {"delay": "1000"},
        {"percent": -1},
        {"errno": 2**32},
        {"random": "true"},
        {"path": 3},
    ],
)
def test_from_dict_rejects_bad_input(data):
    with pytest.raises(ValueError):
        InjectMessage.from_dict(data)


def test_inject_stores_message_for_each_method():
    store = FaultStore()
    message = InjectMessage(methods=["read", "write"], errno=28)
    store.inject(message)
    assert store.get("read") is message
    assert store.get("write") is message
    assert store.get("mkdir") is None


def test_later_inject_replaces_method():
    store = FaultStore()
    store.inject(InjectMessage(methods=["read"], errno=5))
    second = InjectMessage(methods=["read"], delay=10)
    store.inject(second)
    assert store.get("read") is second


def test_recover_clears_default_hook_points():
    store = FaultStore()
    store.inject(InjectMessage(methods=list(DEFAULT_HOOK_POINTS), errno=5))
    store.recover()
    assert all(store.get(m) is None for m in DEFAULT_HOOK_POINTS)


def test_recover_leaves_methods_outside_default_points():
    store = FaultStore()
    message = InjectMessage(methods=["open", "read"], errno=5)
    store.inject(message)
    store.recover()
    assert "open" not in DEFAULT_HOOK_POINTS
    assert store.get("open") is message
    assert store.get("read") is None