"""Tests for request classification."""

from __future__ import annotations

import json
from urllib.parse import urlencode

import pytest

from conftest import SECRET, push_payload, sign
from validator import InboundRequest, Verdict, classify_request


def _post(body: bytes, event: str | None = "push", **overrides) -> InboundRequest:
    fields = {
        "method": "POST",
        "path": "/",
        "body": body,
        "content_type": "application/json",
        "signature_256": sign(body),
        "event_type": event,
    }
    fields.update(overrides)
    return InboundRequest(**fields)


class TestPathAndMethod:
    @pytest.mark.parametrize("method", ["GET", "HEAD", "POST", "PUT", "DELETE"])
    def test_non_root_path_is_not_found(self, method: str) -> None:
        body = push_payload()
        request = InboundRequest(method=method, path="/foo", body=body, signature_256=sign(body), event_type="push")
        assert classify_request(request, SECRET).verdict is Verdict.NOT_FOUND

    @pytest.mark.parametrize("path", ["", "/"])
    def test_root_paths(self, path: str) -> None:
        assert classify_request(InboundRequest(method="GET", path=path), SECRET).verdict is Verdict.STATUS

    def test_head_is_alive(self) -> None:
        assert classify_request(InboundRequest(method="HEAD", path="/"), SECRET).verdict is Verdict.ALIVE

    @pytest.mark.parametrize("method", ["PUT", "PATCH", "DELETE", "OPTIONS"])
    def test_other_methods_rejected(self, method: str) -> None:
        result = classify_request(InboundRequest(method=method, path="/"), SECRET)
        assert result.verdict is Verdict.METHOD_NOT_ALLOWED


class TestAuthentication:
    def test_tampered_body(self) -> None:
        body = push_payload()
        tampered = bytearray(body)
        tampered[10] ^= 0x01
        request = _post(bytes(tampered), signature_256=sign(body))
        assert classify_request(request, SECRET).verdict is Verdict.UNAUTHORIZED

    def test_missing_signature(self) -> None:
        request = _post(push_payload(), signature_256=None)
        assert classify_request(request, SECRET).verdict is Verdict.UNAUTHORIZED

    def test_legacy_sha1_header(self) -> None:
        body = push_payload()
        request = _post(body, signature_256=None, signature=sign(body, algorithm="sha1"))
        assert classify_request(request, SECRET).verdict is Verdict.PUSH_TRIGGER

    def test_sha256_header_wins(self) -> None:
        body = push_payload()
        request = _post(body, signature="sha1=deadbeef")
        assert classify_request(request, SECRET).verdict is Verdict.PUSH_TRIGGER

    def test_unsupported_content_type(self) -> None:
        request = _post(push_payload(), content_type="text/plain")
        assert classify_request(request, SECRET).verdict is Verdict.UNAUTHORIZED

    def test_empty_secret_disables_check(self) -> None:
        request = _post(push_payload(), signature_256=None)
        assert classify_request(request, "").verdict is Verdict.PUSH_TRIGGER


class TestEvents:
    def test_ping(self) -> None:
        body = json.dumps({"zen": "Design for failure."}).encode()
        assert classify_request(_post(body, event="ping"), SECRET).verdict is Verdict.PING

    def test_push_with_head_commit_triggers(self) -> None:
        result = classify_request(_post(push_payload("abc123")), SECRET)
        assert result.verdict is Verdict.PUSH_TRIGGER
        assert result.triggers_sync
        assert result.push is not None
        assert result.push.head_commit.id == "abc123"
        assert result.push.repository.full_name == "octo/hello"
        assert result.push.branch == "main"

    def test_push_without_head_commit_is_ignored(self) -> None:
        result = classify_request(_post(push_payload(head_commit=None)), SECRET)
        assert result.verdict is Verdict.IGNORED
        assert not result.triggers_sync
        assert "<deleted>" in result.reason

    def test_other_known_event_is_ignored(self) -> None:
        body = json.dumps({"action": "opened"}).encode()
        result = classify_request(_post(body, event="issues"), SECRET)
        assert result.verdict is Verdict.IGNORED
        assert result.push is None

    def test_form_encoded_payload(self) -> None:
        body = urlencode({"payload": push_payload().decode()}).encode()
        request = _post(body, content_type="application/x-www-form-urlencoded; charset=utf-8")
        assert classify_request(request, SECRET).verdict is Verdict.PUSH_TRIGGER

    @pytest.mark.parametrize(
        ("body", "event"),
        [
            (b"{not json", "push"),
            (b"[1, 2, 3]", "push"),
            pytest.param(b"{\"a\": " * 100_000 + b"1" + b"}" * 100_000, "push", id="deeply-nested"),
            (b'{"ref": ["refs/heads/main"]}', "push"),
            (b"{}", "not_a_github_event"),
            (b"{}", None),
        ],
    )
    def test_bad_payload(self, body: bytes, event: str | None) -> None:
        assert classify_request(_post(body, event=event), SECRET).verdict is Verdict.BAD_PAYLOAD
