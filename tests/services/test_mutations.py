"""Tests for the optimistic mutation coordinator."""
import asyncio
import pytest

from weekshop.domain.errors import DuplicateItemError, RemoteError
from weekshop.services.mutations import Mutation, MutationCoordinator


class Box:
    """A single local value mutated through the coordinator."""

    def __init__(self, value):
        self.value = value

    def mutation(self, new_value, persist, **kwargs):
        previous = self.value

        def apply():
            self.value = new_value

        def revert():
            if self.value == new_value:
                self.value = previous

        return Mutation(action="set_value", apply=apply, revert=revert, persist=persist, **kwargs)


def failing(error):
    async def persist():
        raise error
    return persist


@pytest.mark.asyncio
async def test_change_is_visible_before_persistence(notifier):
    """Test that the local value changes synchronously on dispatch."""
    release = asyncio.Event()
    box = Box(1)

    async def persist():
        await release.wait()
        return "saved"

    coordinator = MutationCoordinator(notifier, rollback_on_failure=False)
    task = coordinator.dispatch(box.mutation(2, persist))

    assert box.value == 2
    assert coordinator.pending == 1
    release.set()
    result = await task
    assert result.success
    assert result.data == "saved"
    assert coordinator.pending == 0


@pytest.mark.asyncio
async def test_failure_keeps_value_without_rollback(notifier):
    box = Box(1)
    coordinator = MutationCoordinator(notifier, rollback_on_failure=False)

    result = await coordinator.dispatch(box.mutation(
        2, failing(RemoteError()), failure_message="Failed to update quantity"
    ))

    assert not result.success
    assert result.kind == "remote"
    assert result.metadata["reverted"] is False
    assert box.value == 2
    assert notifier.last.message == "Failed to update quantity"


@pytest.mark.asyncio
async def test_failure_reverts_with_rollback(notifier):
    box = Box(1)
    coordinator = MutationCoordinator(notifier, rollback_on_failure=True)

    result = await coordinator.dispatch(box.mutation(2, failing(RemoteError())))

    assert not result.success
    assert result.metadata["reverted"] is True
    assert box.value == 1


@pytest.mark.asyncio
async def test_always_revert_ignores_policy(notifier):
    """Test that inserts are undone even when rollback is off."""
    box = Box(None)
    coordinator = MutationCoordinator(notifier, rollback_on_failure=False)

    result = await coordinator.dispatch(box.mutation(
        "pending", failing(DuplicateItemError()), always_revert=True
    ))

    assert box.value is None
    assert result.kind == "duplicate"
    # Constraint errors keep their own message
    assert notifier.last.message == "Product already in list"


@pytest.mark.asyncio
async def test_late_failure_does_not_clobber_newer_value(notifier):
    """Test out-of-order completion: the older mutation fails after a newer one
    succeeded, and the newer value survives the rollback."""
    first_done = asyncio.Event()
    box = Box(1)
    coordinator = MutationCoordinator(notifier, rollback_on_failure=True)

    async def slow_failure():
        await first_done.wait()
        raise RemoteError()

    async def fast_success():
        return 3

    older = coordinator.dispatch(box.mutation(2, slow_failure))
    newer = coordinator.dispatch(box.mutation(3, fast_success))

    assert (await newer).success
    first_done.set()
    assert not (await older).success
    assert box.value == 3


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_remote_error(notifier):
    box = Box(1)
    coordinator = MutationCoordinator(notifier, rollback_on_failure=False)

    result = await coordinator.dispatch(box.mutation(
        2, failing(RuntimeError("boom")), failure_message="Error updating product order"
    ))

    assert result.kind == "remote"
    assert notifier.last.message == "Error updating product order"


@pytest.mark.asyncio
async def test_reconcile_receives_saved_value(notifier):
    seen = []
    box = Box(1)
    coordinator = MutationCoordinator(notifier)

    async def persist():
        return {"id": "real"}

    await coordinator.dispatch(box.mutation(2, persist, reconcile=seen.append))

    assert seen == [{"id": "real"}]


@pytest.mark.asyncio
async def test_drain_waits_for_everything(notifier):
    box = Box(0)
    coordinator = MutationCoordinator(notifier)

    async def persist():
        await asyncio.sleep(0.01)

    for value in range(1, 4):
        coordinator.dispatch(box.mutation(value, persist))
    await coordinator.drain()

    assert coordinator.pending == 0
    assert box.value == 3


@pytest.mark.asyncio
async def test_resolved_future(notifier):
    from weekshop.services.base_service import Result

    future = MutationCoordinator.resolved(Result.ok(5))
    assert future.done()
    assert (await future).data == 5


@pytest.mark.asyncio
async def test_reconcile_error_does_not_escape(notifier):
    """Test that a broken reconcile still resolves the task and lets drain finish."""
    box = Box(1)
    coordinator = MutationCoordinator(notifier)

    async def persist():
        return "saved"

    def reconcile(value):
        raise KeyError(value)

    task = coordinator.dispatch(box.mutation(2, persist, reconcile=reconcile))
    await coordinator.drain()

    result = await task
    assert result.success
    assert result.data == "saved"
    assert result.metadata == {"reconciled": False}
    assert coordinator.pending == 0


@pytest.mark.asyncio
async def test_reconcile_error_drops_placeholder(notifier):
    """Test that an insert whose reconcile fails does not leave its placeholder behind."""
    box = Box(None)
    coordinator = MutationCoordinator(notifier)

    async def persist():
        return "saved"

    def reconcile(value):
        raise RuntimeError("lost track of placeholder")

    result = await coordinator.dispatch(
        box.mutation("placeholder", persist, reconcile=reconcile, always_revert=True)
    )

    assert result.success
    assert box.value is None
