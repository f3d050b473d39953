import random

from bladeop.faults import FaultRegistry, InjectMessage
from bladeop.hook import ChaosbladeHook, probab, random_errno


class FixedRng:
    def __init__(self, value):
        self.value = value

    def randrange(self, n):
        return min(self.value, n - 1)


class SleepRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


def make_hook(message=None, rng=None, mount="/mnt/data"):
    registry = FaultRegistry()
    if message is not None:
        registry.inject(message)
    sleep = SleepRecorder()
    hook = ChaosbladeHook(mount, registry=registry, rng=rng or FixedRng(0), sleep=sleep)
    return hook, sleep


def test_no_fault_returns_none():
    hook, sleep = make_hook()
    assert hook.pre_hook("read", "file.txt") is None
    assert sleep.calls == []


def test_errno_fault_returned():
    hook, _ = make_hook(InjectMessage(methods=["read"], errno=28))
    err = hook.pre_hook("read", "file.txt")
    assert isinstance(err, OSError)
    assert err.errno == 28


def test_inject_fault_raises_oserror():
    hook, _ = make_hook(InjectMessage(methods=["write"], errno=5))
    try:
        hook.inject_fault("a", "write")
    except OSError as exc:
        assert exc.errno == 5
    else:
        raise AssertionError("expected OSError")


def test_other_method_not_affected():
    hook, _ = make_hook(InjectMessage(methods=["read"], errno=28))
    assert hook.pre_hook("write", "file.txt") is None


def test_path_filter_outside_rule_path():
    hook, _ = make_hook(InjectMessage(methods=["read"], path="/mnt/data/logs", errno=5))
    assert hook.pre_hook("read", "/other/file") is None


def test_path_filter_inside_rule_path():
    hook, _ = make_hook(InjectMessage(methods=["read"], path="/mnt/data/logs", errno=5))
    err = hook.pre_hook("read", "/logs/app.log")
    assert err.errno == 5


def test_percent_miss_skips_fault():
    hook, _ = make_hook(InjectMessage(methods=["read"], percent=50, errno=5), rng=FixedRng(98))
    assert hook.pre_hook("read", "f") is None


def test_percent_hit_applies_fault():
    hook, _ = make_hook(InjectMessage(methods=["read"], percent=50, errno=5), rng=FixedRng(0))
    assert hook.pre_hook("read", "f").errno == 5


def test_random_errno_used_when_no_errno():
    hook, _ = make_hook(InjectMessage(methods=["read"], random=True), rng=FixedRng(0))
    assert hook.pre_hook("read", "f").errno == 0x7


def test_errno_takes_precedence_over_random():
    hook, _ = make_hook(InjectMessage(methods=["read"], random=True, errno=5), rng=FixedRng(0))
    assert hook.pre_hook("read", "f").errno == 5


def test_delay_sleeps_in_seconds():
    hook, sleep = make_hook(InjectMessage(methods=["read"], delay=1500))
    assert hook.pre_hook("read", "f") is None
    assert sleep.calls == [1.5]


def test_two_paths_second_matches():
    hook, _ = make_hook(InjectMessage(methods=["rename"], path="/mnt/data/b", errno=5))
    err = hook.pre_hook("rename", "a", "b")
    assert err.errno == 5


def test_pre_release_swallows_error_but_delays():
    hook, sleep = make_hook(InjectMessage(methods=["release"], errno=5, delay=200))
    assert hook.pre_release("f") is None
    assert sleep.calls == [0.2]


def test_random_errno_within_range():
    rng = random.Random(1)
    codes = {random_errno(rng).errno for _ in range(500)}
    assert min(codes) >= 0x7
    assert max(codes) < 0x36


def test_probab_bounds():
    rng = random.Random(2)
    assert all(probab(100, rng) for _ in range(200))
    assert not any(probab(0, rng) for _ in range(200))