import json
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field

# Event names GitHub sends in the X-GitHub-Event header. Anything outside this
# set is rejected as an unknown payload.
GITHUB_EVENT_TYPES = frozenset({
    "branch_protection_rule",
    "check_run",
    "check_suite",
    "commit_comment",
    "content_reference",
    "create",
    "delete",
    "deploy_key",
    "deployment",
    "deployment_status",
    "discussion",
    "discussion_comment",
    "fork",
    "github_app_authorization",
    "gollum",
    "installation",
    "installation_repositories",
    "issue_comment",
    "issues",
    "label",
    "marketplace_purchase",
    "member",
    "membership",
    "merge_group",
    "meta",
    "milestone",
    "org_block",
    "organization",
    "package",
    "page_build",
    "ping",
    "project",
    "project_card",
    "project_column",
    "projects_v2",
    "projects_v2_item",
    "public",
    "pull_request",
    "pull_request_review",
    "pull_request_review_comment",
    "pull_request_review_thread",
    "pull_request_target",
    "push",
    "release",
    "repository",
    "repository_dispatch",
    "repository_import",
    "repository_vulnerability_alert",
    "secret_scanning_alert",
    "security_advisory",
    "sponsorship",
    "star",
    "status",
    "team",
    "team_add",
    "user",
    "watch",
    "workflow_dispatch",
    "workflow_job",
    "workflow_run",
})


class Repository(BaseModel):
    full_name: str = ""


class HeadCommit(BaseModel):
    id: str


class Pusher(BaseModel):
    name: Optional[str] = None


class PushEvent(BaseModel):
    ref: str = ""
    repository: Repository = Field(default_factory=Repository)
    # GitHub sends null here when the ref was deleted.
    head_commit: Optional[HeadCommit] = None
    pusher: Optional[Pusher] = None

    @property
    def branch(self) -> str:
        return self.ref.split('/')[-1] if self.ref else ""

    @property
    def is_deletion(self) -> bool:
        return self.head_commit is None


def parse_webhook(event_type: str, payload: bytes) -> Union[PushEvent, Dict[str, Any]]:
    """
    Parse a verified payload for the given X-GitHub-Event type.

    Push events are validated into a PushEvent; every other known event type
    is returned as the decoded JSON object. Raises ValueError for unknown event
    types and for payloads that are not a valid JSON object of that type.
    """
    if event_type not in GITHUB_EVENT_TYPES:
        raise ValueError(f"unknown X-GitHub-Event in message: {event_type!r}")

    try:
        data = json.loads(payload)
    except RecursionError:
        raise ValueError(f"{event_type} payload is nested too deeply") from None
    if not isinstance(data, dict):
        raise ValueError(f"{event_type} payload is not a JSON object")

    if event_type == "push":
        return PushEvent.model_validate(data)
    return data
