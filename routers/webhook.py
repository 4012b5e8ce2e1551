import logging
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse

from dependencies import get_server_state
from models.github_webhook import PushEvent
from models.sync_result import SyncResult
from state import ServerState
from utils import format_duration
from validator import InboundRequest, Verdict, classify_request

router = APIRouter()
logger = logging.getLogger(__name__)

HANDLED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def make_sync_report(state: ServerState, push: PushEvent) -> Callable[[SyncResult], None]:
    """
    Build the follow-up for one sync: log the result and notify. The task
    gate runs it after releasing the lock, so a slow notification endpoint
    never delays the next pull.
    """
    repo_full_name = push.repository.full_name
    push_branch = push.branch

    def report(result: SyncResult) -> None:
        if result.success:
            logger.info(result.report())
        else:
            logger.error(result.report())
        state.notifier.notify_sync_event(repo_full_name, push_branch, result)

    return report


async def dispatch(request: Request, state: ServerState) -> Response:
    body = await request.body() if request.method == "POST" else b""
    headers = request.headers
    inbound = InboundRequest(
        method=request.method,
        path=request.url.path,
        body=body,
        content_type=headers.get("Content-Type", ""),
        signature_256=headers.get("X-Hub-Signature-256"),
        signature=headers.get("X-Hub-Signature"),
        event_type=headers.get("X-GitHub-Event"),
    )
    classification = classify_request(inbound, state.webhook_secret)
    verdict = classification.verdict

    if verdict is Verdict.NOT_FOUND:
        logger.info(f"- {classification.reason}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    if verdict is Verdict.ALIVE:
        return Response(status_code=status.HTTP_200_OK)
    if verdict is Verdict.STATUS:
        # The uptime is a small enough information leak.
        return PlainTextResponse(format_duration(state.uptime_ns()))
    if verdict is Verdict.METHOD_NOT_ALLOWED:
        logger.warning(f"- {classification.reason}")
        raise HTTPException(
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            detail="Invalid method",
            headers={"Allow": "GET, HEAD, POST"},
        )
    if verdict is Verdict.UNAUTHORIZED:
        logger.warning(f"- {classification.reason}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid secret")
    if verdict is Verdict.BAD_PAYLOAD:
        logger.warning(f"- {classification.reason}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")

    logger.info(f"- {classification.reason}")
    if classification.triggers_sync:
        # Run the pull in the background so the hook doesn't take too long.
        state.gate.run(state.runner.execute, after=make_sync_report(state, classification.push), name="sync")

    return JSONResponse({})


@router.api_route("/{path:path}", methods=HANDLED_METHODS, include_in_schema=False)
async def handle_request(request: Request, state: ServerState = Depends(get_server_state)):
    return await dispatch(request, state)


async def handle_unlisted_method(request: Request):
    # TRACE, PROPFIND and custom verbs still go through path checks first.
    return await dispatch(request, get_server_state(request))


# Registered after the API route so it only sees methods that route rejects.
router.add_route("/{path:path}", handle_unlisted_method, include_in_schema=False)
