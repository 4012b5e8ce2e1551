"""
Classification of inbound HTTP requests.

Every request hitting the daemon is reduced to a single Verdict by applying
the rules below in order and stopping at the first one that matches:

1. anything but the root path is NOT_FOUND;
2. HEAD is a liveness probe, GET a status query;
3. any method other than POST is rejected;
4. a POST must carry a valid signature for the configured secret;
5. "ping" events are acknowledged;
6. push events with a head commit trigger a sync, everything else that parses
   is ignored.
"""
import logging
from enum import Enum
from typing import Optional
from urllib.parse import parse_qs

from pydantic import BaseModel, ConfigDict

from models.github_webhook import PushEvent, parse_webhook
from utils import verify_signature

logger = logging.getLogger(__name__)

ROOT_PATHS = ("", "/")


class Verdict(str, Enum):
    NOT_FOUND = "not_found"
    ALIVE = "alive"
    STATUS = "status"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    UNAUTHORIZED = "unauthorized"
    PING = "ping"
    BAD_PAYLOAD = "bad_payload"
    PUSH_TRIGGER = "push_trigger"
    IGNORED = "ignored"


class InboundRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: str
    path: str
    body: bytes = b""
    content_type: str = ""
    signature_256: Optional[str] = None
    signature: Optional[str] = None
    event_type: Optional[str] = None

    @property
    def signature_header(self) -> Optional[str]:
        # X-Hub-Signature-256 wins over the legacy sha1 header.
        return self.signature_256 or self.signature


class Classification(BaseModel):
    model_config = ConfigDict(frozen=True)

    verdict: Verdict
    reason: str = ""
    push: Optional[PushEvent] = None

    @property
    def triggers_sync(self) -> bool:
        return self.verdict is Verdict.PUSH_TRIGGER


def extract_payload(request: InboundRequest) -> bytes:
    """Return the event payload carried by the body, based on its content type."""
    media_type = request.content_type.split(";", 1)[0].strip().lower()
    if media_type == "application/json":
        return request.body
    if media_type == "application/x-www-form-urlencoded":
        form = parse_qs(request.body.decode("utf-8", errors="replace"))
        return form.get("payload", [""])[0].encode("utf-8")
    raise ValueError(f"Webhook request has unsupported Content-Type {request.content_type!r}")


def classify_request(request: InboundRequest, secret: str) -> Classification:
    if request.path not in ROOT_PATHS:
        return Classification(verdict=Verdict.NOT_FOUND, reason=f"Unexpected path {request.path}")

    method = request.method.upper()
    if method == "HEAD":
        return Classification(verdict=Verdict.ALIVE)
    if method == "GET":
        return Classification(verdict=Verdict.STATUS)
    if method != "POST":
        return Classification(verdict=Verdict.METHOD_NOT_ALLOWED, reason=f"invalid method {method}")

    try:
        payload = extract_payload(request)
    except ValueError as e:
        return Classification(verdict=Verdict.UNAUTHORIZED, reason=str(e))

    if not verify_signature(request.body, request.signature_header, secret):
        return Classification(verdict=Verdict.UNAUTHORIZED, reason="invalid secret")

    event_type = request.event_type or ""
    if event_type == "ping":
        return Classification(verdict=Verdict.PING, reason="ping")

    try:
        event = parse_webhook(event_type, payload)
    except ValueError as e:
        logger.debug(f"Could not parse {event_type!r} payload: {e}")
        return Classification(verdict=Verdict.BAD_PAYLOAD, reason=f"invalid payload: {e}")

    if not isinstance(event, PushEvent):
        return Classification(verdict=Verdict.IGNORED, reason=f"ignoring hook type {event_type}")

    repo_full_name = event.repository.full_name
    if event.is_deletion:
        return Classification(
            verdict=Verdict.IGNORED,
            reason=f"Push {repo_full_name} {event.ref} <deleted>",
            push=event,
        )
    return Classification(
        verdict=Verdict.PUSH_TRIGGER,
        reason=f"Push {repo_full_name} {event.ref} {event.head_commit.id}",
        push=event,
    )
