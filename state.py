import time

from notifications import Notifications
from sync_runner import SyncRunner
from task_gate import TaskGate


class ServerState:
    """
    Everything request handlers share for the lifetime of the process.

    Built once by create_app and reached through the get_server_state
    dependency. Only the gate is mutated after startup.
    """

    def __init__(self, webhook_secret: str, gate: TaskGate, runner: SyncRunner, notifier: Notifications):
        self.webhook_secret = webhook_secret
        self.started_ns = time.monotonic_ns()
        self.gate = gate
        self.runner = runner
        self.notifier = notifier

    def uptime_ns(self) -> int:
        return time.monotonic_ns() - self.started_ns
