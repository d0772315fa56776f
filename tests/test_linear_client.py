import json

import httpx
import pytest

from linear_agent.utils.linear import LinearClient


def _client(handler):
    transport = httpx.MockTransport(handler)
    return LinearClient("lin_api_key", http_client=httpx.AsyncClient(transport=transport))


@pytest.mark.asyncio
async def test_get_comment_parses_node():
    def handler(request):
        assert request.headers["Authorization"] == "lin_api_key"
        assert json.loads(request.content)["variables"] == {"id": "c2"}
        return httpx.Response(
            200,
            json={
                "data": {
                    "comment": {
                        "id": "c2",
                        "body": "reply",
                        "parent": {"id": "c1"},
                        "issue": {"id": "issue-1"},
                        "user": {"id": "user-1", "name": "Dana"},
                    }
                }
            },
        )

    comment = await _client(handler).get_comment("c2")
    assert comment.parent_id == "c1"
    assert comment.issue_id == "issue-1"
    assert comment.author_user_id == "user-1"


@pytest.mark.asyncio
async def test_create_comment_sends_parent():
    seen = {}

    def handler(request):
        seen.update(json.loads(request.content)["variables"]["input"])
        return httpx.Response(
            200, json={"data": {"commentCreate": {"success": True, "comment": {"id": "new"}}}}
        )

    result = await _client(handler).create_comment("issue-1", "hello", parent_id="c1")
    assert result.success is True
    assert result.id == "new"
    assert seen == {"issueId": "issue-1", "body": "hello", "parentId": "c1"}


@pytest.mark.asyncio
async def test_create_comment_reports_graphql_errors():
    def handler(request):
        return httpx.Response(
            200, json={"errors": [{"message": "Parent comment must be a top level comment"}]}
        )

    result = await _client(handler).create_comment("issue-1", "hello", parent_id="c2")
    assert result.success is False
    assert result.parent_not_top_level is True


@pytest.mark.asyncio
async def test_viewer_lookup_failure_returns_none():
    def handler(request):
        return httpx.Response(500, json={})

    assert await _client(handler).get_viewer_id() is None


@pytest.mark.asyncio
async def test_unconfigured_client_fails_create():
    result = await LinearClient("").create_comment("issue-1", "hello")
    assert result.success is False
