from memories.client import FeedState, SortMode, all_tags, filter_memories, sort_memories, visible_memories
from memories.schemas import CommentOut, CreatorOut, MemoryOut


def mem(mid: str, *, title: str = "", likes=(), tags=(), created_at: str = "2024-01-01T00:00:00+00:00") -> MemoryOut:
    return MemoryOut(
        id=mid,
        title=title or f"title {mid}",
        description="about " + mid,
        tags=list(tags),
        likes=list(likes),
        creator=CreatorOut(id="u1", username="alice"),
        created_at=created_at,
    )


def comment(cid: str, text: str) -> CommentOut:
    return CommentOut(id=cid, text=text, creator=CreatorOut(id="u2"), created_at="2024-01-02T00:00:00+00:00")


def loaded_state() -> FeedState:
    state = FeedState()
    state.load_page([mem("a"), mem("b"), mem("c")], page=1, total_pages=2, tag=None)
    state.load_profile([mem("b"), mem("d")])
    return state


class TestFeedState:

    def test_later_pages_append(self):
        state = loaded_state()
        assert state.has_more

        state.load_page([mem("e")], page=2, total_pages=2, tag=None)
        assert state.feed.ids() == ["a", "b", "c", "e"]
        assert not state.has_more

        state.load_page([mem("z")], page=1, total_pages=1, tag="food")
        assert state.feed.ids() == ["z"]
        assert state.tag == "food"

    def test_created_goes_to_global_feed_only(self):
        state = loaded_state()
        state.apply_created(mem("new"))

        assert state.feed.ids() == ["new", "a", "b", "c"]
        assert state.profile_feed.ids() == ["b", "d"]

    def test_update_replaces_in_both_caches_in_place(self):
        state = loaded_state()
        state.apply_updated(mem("b", title="Edited"))

        assert state.feed.ids() == ["a", "b", "c"]
        assert state.feed.get("b").title == "Edited"
        assert state.profile_feed.get("b").title == "Edited"
        assert state.feed.get("a").title == "title a"
        assert state.profile_feed.get("d").title == "title d"

    def test_delete_removes_from_both_caches(self):
        state = loaded_state()
        state.apply_deleted("b")

        assert state.feed.ids() == ["a", "c"]
        assert state.profile_feed.ids() == ["d"]

    def test_likes_patch_both_caches(self):
        state = loaded_state()
        state.apply_likes("b", ["u9"])

        assert state.feed.get("b").likes == ["u9"]
        assert state.profile_feed.get("b").likes == ["u9"]
        assert state.feed.get("b").title == "title b"
        assert state.feed.get("a").likes == []

    def test_comments_patch_both_caches(self):
        state = loaded_state()
        comments = [comment("c2", "nice!"), comment("c1", "first")]
        state.apply_comments("b", comments)

        assert [c.text for c in state.feed.get("b").comments] == ["nice!", "first"]
        assert [c.text for c in state.profile_feed.get("b").comments] == ["nice!", "first"]
        assert state.profile_feed.get("d").comments == []

    def test_mutation_of_uncached_memory_is_noop(self):
        state = loaded_state()
        state.apply_likes("missing", ["u9"])
        state.apply_deleted("missing")

        assert state.feed.ids() == ["a", "b", "c"]
        assert state.profile_feed.ids() == ["b", "d"]


class TestFilterAndSort:

    def test_search_matches_title_description_or_tag(self):
        items = [mem("a", title="Beach Day"), mem("b", tags=["beach"]), mem("c", title="Mountains")]
        assert [m.id for m in filter_memories(items, search="  BEACH ")] == ["a", "b"]
        assert [m.id for m in filter_memories(items, search="about c")] == ["c"]

    def test_tag_filter_is_exact(self):
        items = [mem("a", tags=["food"]), mem("b", tags=["foodie"]), mem("c")]
        assert [m.id for m in filter_memories(items, tag="food")] == ["a"]
        assert len(filter_memories(items)) == 3

    def test_most_liked_first(self):
        items = [mem("A", likes=["1", "2", "3"]), mem("B", likes=["1"]), mem("C", likes=["1", "2"])]
        assert [m.id for m in sort_memories(items, SortMode.POPULAR)] == ["A", "C", "B"]

    def test_equal_likes_keep_cached_order(self):
        items = [mem("x", likes=["1"]), mem("y", likes=["2"]), mem("z")]
        assert [m.id for m in sort_memories(items, "popular")] == ["x", "y", "z"]

    def test_latest_and_oldest(self):
        items = [
            mem("mid", created_at="2024-02-01T00:00:00+00:00"),
            mem("new", created_at="2024-03-01T00:00:00+00:00"),
            mem("old", created_at="2024-01-01T00:00:00+00:00"),
        ]
        assert [m.id for m in sort_memories(items, SortMode.LATEST)] == ["new", "mid", "old"]
        assert [m.id for m in sort_memories(items, SortMode.OLDEST)] == ["old", "mid", "new"]

    def test_visible_memories_filters_then_sorts(self):
        items = [mem("a", tags=["food"], likes=["1"]), mem("b"), mem("c", tags=["food"], likes=["1", "2"])]
        visible = visible_memories(items, tag="food", sort=SortMode.POPULAR)
        assert [m.id for m in visible] == ["c", "a"]

    def test_all_tags_sorted_and_unique(self):
        items = [mem("a", tags=["travel", "food"]), mem("b", tags=["food"]), mem("c")]
        assert all_tags(items) == ["food", "travel"]
