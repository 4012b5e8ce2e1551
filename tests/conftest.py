"""Shared test fixtures."""

from __future__ import annotations

import hashlib
import hmac
import json
import threading
import time
from typing import Any, Callable

import pytest

from config import Settings
from models.sync_result import SyncResult

SECRET = "test-webhook-secret"


def sign(body: bytes, secret: str = SECRET, algorithm: str = "sha256") -> str:
    digest = hmac.new(secret.encode(), body, getattr(hashlib, algorithm)).hexdigest()
    return f"{algorithm}={digest}"


def push_payload(head_commit: str | None = "0123456789abcdef", ref: str = "refs/heads/main") -> bytes:
    payload: dict[str, Any] = {
        "ref": ref,
        "repository": {"full_name": "octo/hello"},
        "pusher": {"name": "octocat"},
        "head_commit": {"id": head_commit} if head_commit else None,
    }
    return json.dumps(payload).encode()


class FakeRunner:
    """Stands in for SyncRunner and records how executions overlap."""

    def __init__(self, delay: float = 0.0, success: bool = True, release: threading.Event | None = None) -> None:
        self.delay = delay
        self.success = success
        self.release = release
        self.started = threading.Event()
        self.calls = 0
        self.completed = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def execute(self) -> SyncResult:
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.started.set()
        if self.release is not None:
            self.release.wait(timeout=10)
        time.sleep(self.delay)
        with self._lock:
            self.active -= 1
            self.completed += 1
        return SyncResult(
            command="git pull --prune --quiet",
            exit_code=0 if self.success else 1,
            duration_ns=int(self.delay * 1e9),
            output="" if self.success else "fatal: unable to access remote\n",
            success=self.success,
        )


class FakeNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, SyncResult]] = []

    def notify_sync_event(self, repo: str, branch: str, result: SyncResult) -> None:
        self.events.append((repo, branch, result))


@pytest.fixture
def settings() -> Settings:
    return Settings(github_webhook_secret=SECRET)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def signer() -> Callable[..., str]:
    return sign
