import pytest

from bladeop.faults import (
    DEFAULT_HOOK_POINTS,
    FaultRegistry,
    InjectMessage,
)


def test_to_dict_from_dict_round_trip():
    msg = InjectMessage(methods=["read", "write"], path="/data", delay=100, percent=60,
                        random=True, errno=28)
    assert InjectMessage.from_dict(msg.to_dict()) == msg


def test_to_dict_key_order():
    msg = InjectMessage(methods=["read"])
    assert list(msg.to_dict()) == ["methods", "path", "delay", "percent", "random", "errno"]


def test_from_dict_defaults_for_missing_and_null():
    msg = InjectMessage.from_dict({"methods": None, "path": None})
    assert msg == InjectMessage()


def test_from_dict_keys_case_insensitive():
    msg = InjectMessage.from_dict({"Errno": 3, "PATH": "/x"})
    assert msg.errno == 3
    assert msg.path == "/x"


@pytest.mark.parametrize(
    "data",
    [
        {"delay": -1},
        {"delay": 1.5},
        {"percent": True},
        {"errno": 2**32},
        {"methods": "read"},
        {"methods": [1]},
        {"random": "yes"},
        {"path": 5},
    ],
)
def test_from_dict_rejects_bad_values(data):
    with pytest.raises(ValueError):
        InjectMessage.from_dict(data)


def test_from_dict_rejects_non_mapping():
    with pytest.raises(ValueError):
        InjectMessage.from_dict(["read"])


def test_registry_inject_stores_for_each_method():
    registry = FaultRegistry()
    msg = InjectMessage(methods=["read", "write"], errno=5)
    registry.inject(msg)
    assert registry.lookup("read") is msg
    assert registry.lookup("write") is msg
    assert registry.lookup("mkdir") is None


def test_registry_later_injection_replaces():
    registry = FaultRegistry()
    registry.inject(InjectMessage(methods=["read"], errno=5))
    second = InjectMessage(methods=["read"], errno=9)
    registry.inject(second)
    assert registry.lookup("read") is second


def test_recover_clears_default_hook_points_only():
    assert "open" not in DEFAULT_HOOK_POINTS
    assert "read" in DEFAULT_HOOK_POINTS
    registry = FaultRegistry()
    registry.inject(InjectMessage(methods=list(DEFAULT_HOOK_POINTS) + ["open"], errno=5))
    registry.recover()
    assert all(registry.lookup(m) is None for m in DEFAULT_HOOK_POINTS)
    assert registry.lookup("open") is not None
    assert registry.lookup("open").errno == 5