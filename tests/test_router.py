import pytest

from conftest import AGENT_USER_ID, comment_payload

from linear_agent.errors import RateLimitedError, WebhookValidationError
from linear_agent.protocol import Comment
from linear_agent.router import EventRouter, event_id_of, event_type_of
from linear_agent.security import WebhookRateLimiter
from linear_agent.sessions import SessionStatus


@pytest.fixture
def router(runtime):
    return EventRouter(runtime)


@pytest.mark.asyncio
async def test_help_mention_creates_session_and_replies(router, runtime, store):
    ack = await router.dispatch(comment_payload("c1", "@Agent help"))

    assert ack == {"received": True, "type": "Comment", "sessionCreated": True}
    assert len(runtime.sessions) == 1
    assert len(store.created) == 1
    assert "Welcome to the Agent" in store.created[0].body
    assert store.created[0].parent_id == "c1"


@pytest.mark.asyncio
async def test_unaddressed_comment_is_ignored(router, runtime, store):
    ack = await router.dispatch(comment_payload("c1", "hello"))

    assert ack == {"received": True, "type": "Comment", "sessionCreated": False}
    assert len(runtime.sessions) == 0
    assert store.created == []


@pytest.mark.asyncio
async def test_mention_generates_session_reply(router, runtime, store, generator):
    await router.dispatch(comment_payload("c1", "@Agent why is login failing"))

    session = runtime.sessions.get_session_by_issue("issue-1", "user-1")
    assert session.status is SessionStatus.ACTIVE
    assert session.conversation_id == "conv-1"
    assert session.message_count == 1
    assert store.created[0].body == "session reply to: @Agent why is login failing"


@pytest.mark.asyncio
async def test_follow_up_continues_existing_session(router, runtime, store):
    await router.dispatch(comment_payload("c1", "@Agent why is login failing"))
    ack = await router.dispatch(comment_payload("c2", "@Agent and the signup page"))

    assert ack["sessionCreated"] is False
    assert len(runtime.sessions) == 1
    session = runtime.sessions.get_session_by_issue("issue-1", "user-1")
    assert session.message_count == 2


@pytest.mark.asyncio
async def test_duplicate_delivery_is_acknowledged_once(router, store):
    payload = comment_payload("c1", "@Agent help", event_id="evt-1")
    await router.dispatch(payload)
    ack = await router.dispatch(payload)

    assert ack == {"received": True, "type": "Comment", "duplicate": True}
    assert len(store.created) == 1


@pytest.mark.asyncio
async def test_same_comment_under_new_event_id_is_not_answered_twice(router, store):
    await router.dispatch(comment_payload("c1", "@Agent help", event_id="evt-1"))
    ack = await router.dispatch(comment_payload("c1", "@Agent help", event_id="evt-2"))

    assert ack["sessionCreated"] is False
    assert len(store.created) == 1


@pytest.mark.asyncio
async def test_agent_never_replies_to_itself(router, store):
    ack = await router.dispatch(comment_payload("c1", "@Agent help", user_id=AGENT_USER_ID))

    assert ack["sessionCreated"] is False
    assert store.created == []


@pytest.mark.asyncio
async def test_observed_app_user_is_treated_as_agent(runtime, store):
    runtime.identity.configured_id = ""
    router = EventRouter(runtime)
    await router.dispatch(
        {"type": "AppUserNotification", "appUserId": "app-user", "notification": {}}
    )

    await router.dispatch(comment_payload("c1", "@Agent help", user_id="app-user"))
    assert store.created == []


@pytest.mark.asyncio
async def test_threaded_reply_to_agent_is_answered(router, store):
    store.add(Comment("top", "Here is my plan", AGENT_USER_ID, "issue-1"))
    store.add(Comment("c1", "sounds good, proceed", "user-1", "issue-1", parent_id="top"))
    ack = await router.dispatch(comment_payload("c1", "sounds good, proceed", parent_id="top"))

    assert ack["sessionCreated"] is True
    assert store.created[-1].parent_id == "top"


@pytest.mark.asyncio
async def test_session_creation_failure_still_replies(
    router, runtime, store, generator, monkeypatch
):
    def broken(*args, **kwargs):
        raise RuntimeError("session store unavailable")

    monkeypatch.setattr(runtime.sessions, "create_session", broken)
    ack = await router.dispatch(comment_payload("c1", "@Agent why is login failing"))

    assert ack == {"received": True, "type": "Comment", "sessionCreated": False}
    assert store.created[0].body == "single-shot reply to: @Agent why is login failing"
    assert ("linear", "@Agent why is login failing") in generator.calls


@pytest.mark.asyncio
async def test_conversation_failure_falls_back_to_single_shot(router, runtime, store, generator):
    generator.fail_conversation = True
    await router.dispatch(comment_payload("c1", "@Agent why is login failing"))

    session = runtime.sessions.get_session_by_issue("issue-1", "user-1")
    assert session.status is SessionStatus.ERROR
    assert store.created[0].body.startswith("single-shot reply to:")


@pytest.mark.asyncio
async def test_comment_without_action_is_treated_as_create(router, runtime, store):
    payload = {
        "type": "Comment",
        "data": {
            "id": "c1",
            "body": "@Agent help",
            "user": {"id": "u1"},
            "issue": {"id": "i1", "title": "Checkout fails"},
        },
    }

    ack = await router.dispatch(payload)

    assert ack == {"received": True, "type": "Comment", "sessionCreated": True}
    assert len(runtime.sessions) == 1
    assert store.created[0].issue_id == "i1"
    assert store.created[0].parent_id == "c1"


@pytest.mark.asyncio
async def test_comment_update_is_ignored(router, runtime, store):
    payload = comment_payload("c1", "@Agent help")
    payload["action"] = "update"

    ack = await router.dispatch(payload)

    assert ack["sessionCreated"] is False
    assert store.created == []


@pytest.mark.asyncio
async def test_follow_up_after_help_reuses_session(router, runtime, store):
    first = await router.dispatch(comment_payload("c1", "@Agent help"))
    second = await router.dispatch(comment_payload("c2", "@Agent why is login failing"))

    assert first["sessionCreated"] is True
    assert second["sessionCreated"] is False
    sessions = list(runtime.sessions)
    assert len(sessions) == 1
    assert sessions[0].status is SessionStatus.ACTIVE
    assert sessions[0].message_count == 1


@pytest.mark.asyncio
async def test_help_takes_precedence_over_todo_command(router, runtime, store):
    await router.dispatch(comment_payload("c1", "@Agent help, add a todo to fix the redirect"))

    assert runtime.todos.get_issue_todos("issue-1") == []
    assert "Welcome to the Agent" in store.created[0].body


@pytest.mark.asyncio
async def test_reactivated_session_starts_fresh_conversation(router, runtime, generator):
    await router.dispatch(comment_payload("c1", "@Agent why is login failing"))
    session = runtime.sessions.get_session_by_issue("issue-1", "user-1")
    runtime.sessions.complete_session(session.id)

    assert generator.ended == ["conv-1"]
    assert session.conversation_id is None

    await router.dispatch(comment_payload("c2", "@Agent it is back"))

    assert session.status is SessionStatus.ACTIVE
    assert session.conversation_id == "conv-2"
    assert generator.conversations == {"conv-2": ["@Agent it is back"]}


@pytest.mark.asyncio
async def test_todo_creation_from_comment(router, runtime, store):
    await router.dispatch(comment_payload("c1", "@Agent create a todo to fix the login redirect"))

    todos = runtime.todos.get_issue_todos("issue-1")
    assert [t.title for t in todos] == ["fix the login redirect"]
    assert "Created TODO" in store.created[0].body


@pytest.mark.asyncio
async def test_notification_for_agent_comment_is_skipped(router, runtime):
    payload = {
        "type": "AppUserNotification",
        "notification": {
            "type": "issueCommentMention",
            "comment": {"id": "c9", "body": "How?", "userId": AGENT_USER_ID, "issueId": "issue-1"},
        },
    }
    ack = await router.dispatch(payload)
    assert ack == {"received": True, "type": "AppUserNotification"}
    assert len(runtime.sessions) == 0


@pytest.mark.asyncio
async def test_notification_updates_elicitation(router, runtime):
    await router.dispatch(comment_payload("c1", "@Agent hi there"))
    session = runtime.sessions.get_session_by_issue("issue-1", "user-1")

    await router.dispatch(
        {
            "type": "AppUserNotification",
            "notification": {
                "type": "issueCommentMention",
                "comment": {
                    "id": "c2",
                    "body": "Can you implement this?",
                    "userId": "user-1",
                    "issueId": "issue-1",
                },
            },
        }
    )
    elicitation = runtime.sessions.get_elicitation_context(session.id)
    assert elicitation.phase == "clarification"
    assert "Can you implement this?" in elicitation.pending_questions
    assert "User intent detected: development_task" in elicitation.context_gathered


@pytest.mark.asyncio
async def test_agent_session_prompt_gets_canned_reply(router, store):
    payload = {
        "type": "AgentSessionEvent",
        "action": "prompted",
        "agentSession": {"id": "as-1", "issueId": "issue-1"},
        "agentActivity": {"userId": "user-1", "content": {"body": "tell me a joke"}},
    }
    ack = await router.dispatch(payload)

    assert ack == {"received": True, "type": "AgentSessionEvent"}
    assert "light attracts bugs" in store.created[0].body


@pytest.mark.asyncio
async def test_permission_change_tracks_teams(router, runtime):
    await router.dispatch(comment_payload("c1", "@Agent hi"))
    session = runtime.sessions.get_session_by_issue("issue-1", "user-1")
    session.context.team_id = "team-1"

    await router.dispatch(
        {"type": "PermissionChange", "data": {"type": "TeamAccessAdded", "teamId": "team-1"}}
    )
    assert "team-1" in router.handlers["PermissionChange"].accessible_teams

    await router.dispatch(
        {"type": "PermissionChange", "data": {"type": "TeamAccessRemoved", "teamId": "team-1"}}
    )
    assert "team-1" not in router.handlers["PermissionChange"].accessible_teams
    assert session.status is SessionStatus.COMPLETED


@pytest.mark.asyncio
async def test_inbox_assignment_is_recorded(router):
    ack = await router.dispatch(
        {"type": "InboxNotification", "data": {"type": "IssueAssigned", "issueId": "issue-7"}}
    )
    assert ack == {"received": True, "type": "InboxNotification"}
    assert "issue-7" in router.handlers["InboxNotification"].assigned_issues


@pytest.mark.asyncio
async def test_unrecognized_event_is_acknowledged(router):
    ack = await router.dispatch({"type": "Reaction", "action": "create", "data": {}})
    assert ack == {"received": True, "type": "Reaction"}


@pytest.mark.asyncio
async def test_empty_payload_is_rejected(router):
    with pytest.raises(WebhookValidationError):
        await router.dispatch({})


@pytest.mark.asyncio
async def test_rate_limit(runtime):
    runtime.rate_limiter = WebhookRateLimiter(max_requests=1)
    router = EventRouter(runtime)
    await router.dispatch({"type": "Reaction"}, client_id="10.0.0.1")

    with pytest.raises(RateLimitedError):
        await router.dispatch({"type": "Reaction"}, client_id="10.0.0.1")
    await router.dispatch({"type": "Reaction"}, client_id="10.0.0.2")


def test_event_identity_helpers():
    assert event_type_of({"type": "Comment", "action": "create"}) == "Comment"
    assert event_type_of({"action": "create"}) == "create"
    assert event_id_of({"id": "evt-1"}, "Comment") == "evt-1"
    assert event_id_of({}, "Comment", delivery_id="d-1") == "d-1"
    assert event_id_of({}, "Comment").startswith("Comment-")


@pytest.mark.asyncio
async def test_scheduled_work_runs_later(router, store):
    jobs = []
    ack = await router.dispatch(comment_payload("c1", "@Agent help"), schedule=jobs.append)

    assert ack["sessionCreated"] is True
    assert store.created == []
    for job in jobs:
        await job()
    assert len(store.created) == 1
