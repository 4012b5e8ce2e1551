"""Self-restart support.

The daemon watches a liveness signal, by default the file it was started
from. When the signal fires, it stops accepting connections, waits for
pending sync tasks and exits so a supervisor can start the new version.
"""
import asyncio
import logging
import os
import sys
from abc import ABC, abstractmethod
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from task_gate import TaskGate

logger = logging.getLogger(__name__)

# Event types that mean the file content was replaced; "opened" and
# "closed_no_write" fire whenever someone merely reads the file.
CHANGE_EVENT_TYPES = frozenset({"created", "modified", "moved", "deleted", "closed"})


def current_executable() -> str:
    """Path of the script this process was started from."""
    if sys.argv and sys.argv[0]:
        return os.path.realpath(sys.argv[0])
    return os.path.realpath(__file__)


class LivenessSignal(ABC):
    """Something that eventually says "restart now"."""

    def start(self) -> None:
        """Establish the watch. Raises when it cannot be established."""

    @abstractmethod
    async def wait(self) -> None:
        """Return when a restart is needed; raise if observing failed."""

    def stop(self) -> None:
        """Release whatever start() acquired."""


class _PathEventHandler(FileSystemEventHandler):
    def __init__(self, path: str, callback: Callable[[FileSystemEvent], None]):
        self.path = path
        self.callback = callback

    def on_any_event(self, event: FileSystemEvent):
        if event.is_directory or event.event_type not in CHANGE_EVENT_TYPES:
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        if any(p and os.path.realpath(os.fsdecode(p)) == self.path for p in paths):
            self.callback(event)


class FileChangeSignal(LivenessSignal):
    """Fires when the watched file is written, replaced, moved or deleted."""

    def __init__(self, path: str, check_interval: float = 1.0):
        self.path = os.path.realpath(path)
        self.check_interval = check_interval
        self._observer: Optional[Observer] = None
        self._fired: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def start(self) -> None:
        if not os.path.isfile(self.path):
            raise FileNotFoundError(f"Cannot watch '{self.path}': no such file")
        self._loop = asyncio.get_running_loop()
        self._fired = asyncio.Event()

        observer = Observer()
        observer.schedule(
            _PathEventHandler(self.path, self._on_change),
            os.path.dirname(self.path),
            recursive=False,
        )
        observer.start()
        self._observer = observer
        logger.info(f"Watching {self.path} for changes")

    def _on_change(self, event: FileSystemEvent):
        # Called from the observer thread.
        logger.info(f"Watched file {event.event_type}: {self.path}")
        try:
            self._loop.call_soon_threadsafe(self._fired.set)
        except RuntimeError:
            logger.debug("Event loop closed before the change could be reported.")

    async def wait(self) -> None:
        if self._observer is None:
            raise RuntimeError("File watcher was not started")
        while not self._fired.is_set():
            if not self._observer.is_alive():
                raise RuntimeError("File watcher stopped unexpectedly")
            try:
                await asyncio.wait_for(self._fired.wait(), timeout=self.check_interval)
            except asyncio.TimeoutError:
                continue

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None


class LifecycleWatcher:
    """
    Coordinates shutdown between the HTTP server and the task gate.

    `server` is anything with a `should_exit` flag, such as uvicorn.Server.
    Without a signal the process serves until it is terminated externally.
    """

    def __init__(self, server, gate: TaskGate, signal: Optional[LivenessSignal] = None):
        self.server = server
        self.gate = gate
        self.signal = signal

    async def run(self, serve_task: asyncio.Task) -> int:
        exit_code = 0
        if self.signal is None:
            await serve_task
        else:
            wait_task = asyncio.ensure_future(self.signal.wait())
            done, _ = await asyncio.wait({serve_task, wait_task}, return_when=asyncio.FIRST_COMPLETED)
            if wait_task in done:
                error = wait_task.exception()
                if error is not None:
                    logger.error(f"Waiting failure: {error}")
                    exit_code = 1
                else:
                    logger.info("Restart requested. Shutting down.")
                self.server.should_exit = True
                await serve_task
            else:
                wait_task.cancel()
                await asyncio.gather(wait_task, return_exceptions=True)

        # Ensures no task is running.
        await self.gate.drain()
        logger.info("All sync tasks finished.")
        return exit_code
