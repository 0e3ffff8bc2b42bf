"""
Tests for concurrent stability checks and first-error aggregation.
"""

import asyncio

import pytest

from kubeconverge.modules.api import ResourceObject
from kubeconverge.modules.coordinator import CheckGroup, wait_stable
from kubeconverge.modules.errors import CommandFailure, StabilityError


class ScriptedChecker:
    """Checker whose outcome per object name is (delay, error or None)."""

    def __init__(self, script):
        self.script = script
        self.started = []
        self.finished = []
        self.cancelled = []

    async def check(self, obj):
        self.started.append(obj.name)
        delay, error = self.script.get(obj.name, (0, None))
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self.cancelled.append(obj.name)
            raise
        self.finished.append(obj.name)
        if error is not None:
            raise error


def _obj(name, kind="Deployment", namespace="prod"):
    return ResourceObject(kind=kind, name=name, namespace=namespace)


@pytest.mark.asyncio
async def test_all_checks_succeed():
    checker = ScriptedChecker({"a": (0.01, None), "b": (0, None)})

    await wait_stable(checker, [_obj("a"), _obj("b")])

    assert sorted(checker.finished) == ["a", "b"]


@pytest.mark.asyncio
async def test_no_objects_is_success():
    checker = ScriptedChecker({})
    await wait_stable(checker, [])
    assert checker.started == []


@pytest.mark.asyncio
async def test_checks_run_concurrently():
    """Test every check starts before any of them finishes"""
    checker = ScriptedChecker({"a": (0.02, None), "b": (0.02, None), "c": (0.02, None)})

    await wait_stable(checker, [_obj("a"), _obj("b"), _obj("c")])

    assert checker.started == ["a", "b", "c"]
    assert len(checker.finished) == 3


@pytest.mark.asyncio
async def test_single_failure_identifies_object():
    checker = ScriptedChecker({"web": (0, CommandFailure(1)), "api": (0, None)})

    with pytest.raises(StabilityError) as exc_info:
        await wait_stable(checker, [_obj("api"), _obj("web", namespace="")])

    error = exc_info.value
    assert (error.kind, error.name, error.namespace) == ("Deployment", "web", "default")
    assert isinstance(error.__cause__, CommandFailure)
    assert error.additional_failures == 0
    assert "Deployment/web" in str(error)


@pytest.mark.asyncio
async def test_later_failures_never_overwrite_first():
    checker = ScriptedChecker(
        {
            "slow": (0.05, CommandFailure(3)),
            "fast": (0, CommandFailure(1)),
            "ok": (0.01, None),
        }
    )

    with pytest.raises(StabilityError) as exc_info:
        await wait_stable(checker, [_obj("slow"), _obj("fast"), _obj("ok")])

    assert exc_info.value.name == "fast"
    assert exc_info.value.cause.exit_code == 1
    assert exc_info.value.additional_failures == 1


@pytest.mark.asyncio
async def test_failure_does_not_cancel_siblings():
    """Test every task is joined even after the first failure"""
    checker = ScriptedChecker({"fails": (0, CommandFailure(1)), "slow": (0.05, None)})

    with pytest.raises(StabilityError):
        await wait_stable(checker, [_obj("fails"), _obj("slow")])

    assert "slow" in checker.finished
    assert checker.cancelled == []


@pytest.mark.asyncio
async def test_cancelling_waiter_cancels_checks():
    checker = ScriptedChecker({"a": (10, None), "b": (10, None)})
    waiter = asyncio.create_task(wait_stable(checker, [_obj("a"), _obj("b")]))

    await asyncio.sleep(0.01)
    waiter.cancel()

    with pytest.raises(asyncio.CancelledError):
        await waiter

    assert sorted(checker.cancelled) == ["a", "b"]


@pytest.mark.asyncio
async def test_group_len_counts_spawned_tasks():
    group = CheckGroup()
    group.spawn(_obj("a"), asyncio.sleep(0))
    group.spawn(_obj("b"), asyncio.sleep(0))

    assert len(group) == 2
    await group.wait()
