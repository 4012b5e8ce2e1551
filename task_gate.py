import asyncio
import logging
from typing import Any, Callable, Optional, Set

logger = logging.getLogger(__name__)


class TaskGate:
    """
    Runs blocking jobs in the background, one at a time.

    run() returns as soon as the job is scheduled so a request handler can
    answer without waiting for it. The job itself waits for the gate, then
    runs in the event loop's default executor so the loop keeps serving
    requests. An optional `after` callback receives the job's result once the
    gate is released; it still counts as pending work. drain() waits until
    every scheduled job and its callback have finished.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._idle = asyncio.Event()
        self._idle.set()
        self._pending = 0
        # Keeps scheduled tasks alive until they are done.
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return self._pending

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def run(
            self,
            job: Callable[[], Any],
            after: Optional[Callable[[Any], None]] = None,
            name: Optional[str] = None,
    ) -> asyncio.Task:
        loop = asyncio.get_running_loop()
        self._pending += 1
        self._idle.clear()
        task = loop.create_task(self._run(job, after), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, job: Callable[[], Any], after: Optional[Callable[[Any], None]]) -> Any:
        loop = asyncio.get_running_loop()
        try:
            try:
                async with self._lock:
                    result = await loop.run_in_executor(None, job)
            except Exception as e:
                logger.error(f"Background sync task failed: {e}", exc_info=True)
                return None

            if after is not None:
                try:
                    await loop.run_in_executor(None, after, result)
                except Exception as e:
                    logger.error(f"Sync follow-up failed: {e}", exc_info=True)
            return result
        finally:
            self._pending -= 1
            if self._pending == 0:
                self._idle.set()

    async def drain(self) -> None:
        if self._pending:
            logger.info(f"Waiting for {self._pending} pending sync task(s) to finish...")
        await self._idle.wait()
