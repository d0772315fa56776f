import pytest

from conftest import FakeCommentStore

from linear_agent.comment_thread import (
    HierarchyOutcome,
    find_top_level_comment_id,
    resolve_comment_hierarchy,
)
from linear_agent.protocol import Comment


@pytest.mark.asyncio
async def test_top_level_comment_resolves_to_itself():
    comment = Comment("c1", "hi", "user-1", "issue-1")
    hierarchy = await resolve_comment_hierarchy(comment, FakeCommentStore([comment]))
    assert hierarchy.top_level is comment
    assert hierarchy.depth == 0
    assert hierarchy.outcome is HierarchyOutcome.RESOLVED


@pytest.mark.asyncio
async def test_nested_reply_walks_to_top():
    top = Comment("top", "root", "user-1", "issue-1")
    child = Comment("child", "a", "user-2", "issue-1", parent_id="top")
    grandchild = Comment("grandchild", "b", "user-1", "issue-1", parent_id="child")
    store = FakeCommentStore([top, child, grandchild])

    hierarchy = await resolve_comment_hierarchy(grandchild, store)
    assert hierarchy.top_level.id == "top"
    assert hierarchy.depth == 2


@pytest.mark.asyncio
async def test_cyclic_parents_stop_at_first_repeat():
    a = Comment("a", "", "user-1", "issue-1", parent_id="b")
    b = Comment("b", "", "user-1", "issue-1", parent_id="a")
    store = FakeCommentStore([a, b])

    hierarchy = await resolve_comment_hierarchy(a, store, max_depth=5)
    assert hierarchy.outcome is HierarchyOutcome.DEPTH_EXCEEDED
    assert hierarchy.top_level is b
    assert hierarchy.depth == 1


@pytest.mark.asyncio
async def test_long_chain_stops_at_depth_cap():
    chain = [Comment("c0", "", "user-1", "issue-1")]
    for i in range(1, 8):
        chain.append(Comment(f"c{i}", "", "user-1", "issue-1", parent_id=f"c{i - 1}"))
    store = FakeCommentStore(chain)

    hierarchy = await resolve_comment_hierarchy(chain[-1], store, max_depth=5)
    assert hierarchy.outcome is HierarchyOutcome.DEPTH_EXCEEDED
    assert hierarchy.top_level.id == "c2"
    assert hierarchy.depth == 5


@pytest.mark.asyncio
async def test_lookup_failure_treats_comment_as_top_level():
    comment = Comment("c1", "hi", "user-1", "issue-1", parent_id="gone")
    hierarchy = await resolve_comment_hierarchy(comment, FakeCommentStore([comment]))
    assert hierarchy.top_level is comment
    assert hierarchy.depth == 1
    assert hierarchy.outcome is HierarchyOutcome.LOOKUP_FAILED


@pytest.mark.asyncio
async def test_find_top_level_comment_id_falls_back_to_input():
    store = FakeCommentStore()
    assert await find_top_level_comment_id("missing", store) == "missing"

    store.fail_lookups = True
    assert await find_top_level_comment_id("c1", store) == "c1"
