import asyncio
import logging
from typing import Awaitable, Iterable, List, Optional, Tuple

from ..api.models import ResourceObject
from ..errors import ConvergenceCancelledError, StabilityError
from ..stability import StabilityChecker

logger = logging.getLogger("kubeconverge.coordinator")


class CheckGroup:
    """
    Task group for per-object stability checks.

    Unlike asyncio.TaskGroup, a failing check does not cancel its
    siblings: every task is joined, the first failure (in completion
    order) is raised and later failures are only counted.
    """

    def __init__(self):
        self._tasks: List[Tuple[ResourceObject, asyncio.Task]] = []

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, obj: ResourceObject, check: Awaitable) -> asyncio.Task:
        """Start a check for `obj` as an independent task."""
        task = asyncio.ensure_future(check)
        task.set_name(f"check {obj.kind}/{obj.name}")
        self._tasks.append((obj, task))
        return task

    async def wait(self) -> None:
        """
        Join every spawned task.

        Raises:
            StabilityError: For the first object whose check failed
            asyncio.CancelledError: If the waiter is cancelled; all
                unfinished checks are cancelled first
        """
        objects = {task: obj for obj, task in self._tasks}
        order = {task: index for index, (_, task) in enumerate(self._tasks)}
        pending = set(objects)

        first_error: Optional[StabilityError] = None
        additional_failures = 0

        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in sorted(done, key=order.__getitem__):
                    error = self._task_error(task)
                    if error is None:
                        continue

                    obj = objects[task]
                    if first_error is None:
                        first_error = StabilityError(
                            obj.kind, obj.name, obj.resolved_namespace, cause=error
                        )
                        logger.error(f"{obj.describe()} is not stable: {error}")
                    else:
                        additional_failures += 1
                        logger.warning(
                            f"{obj.describe()} is also not stable (not reported): {error}"
                        )
        except asyncio.CancelledError:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(f"Cancelled {len(pending)} in-flight stability checks")
            raise

        if first_error is not None:
            first_error.additional_failures = additional_failures
            raise first_error from first_error.cause

    @staticmethod
    def _task_error(task: asyncio.Task) -> Optional[BaseException]:
        if task.cancelled():
            return ConvergenceCancelledError(f"{task.get_name()} was cancelled")
        return task.exception()


async def wait_stable(checker: StabilityChecker, objects: Iterable[ResourceObject]) -> None:
    """
    Check every object concurrently and wait for all of them.

    Raises:
        StabilityError: Identifying the first object that failed
    """
    group = CheckGroup()
    for obj in objects:
        group.spawn(obj, checker.check(obj))

    logger.info(f"Starting to wait for {len(group)} resources to be stable")
    await group.wait()
    logger.info(f"Finished waiting for {len(group)} resources to be stable")
