"""
Client session tests
====================

The async client talks to the real app in-process through httpx.ASGITransport.
"""

import asyncio

import httpx
import pytest

from memories.client import MemoriesApiClient, MemoriesSession
from memories.errors import NotAuthenticated, ValidationFailed

from conftest import create_memory, register


@pytest.fixture
def make_session(app):
    def _make(token=None) -> MemoriesSession:
        api = MemoriesApiClient("http://testserver/api", token=token, transport=httpx.ASGITransport(app=app))
        return MemoriesSession(api, page_size=2)

    return _make


def run(coro):
    return asyncio.run(coro)


class TestAuthFlow:

    def test_bad_stored_token_degrades_silently(self, make_session):
        session = make_session(token="stale.token")
        assert run(session.load_user()) is None
        assert session.token is None
        assert not session.is_authenticated
        assert session.notifications == []

    def test_register_then_restore_from_token(self, make_session):
        session = make_session()
        user = run(session.register("alice", "alice@example.com", "pw"))
        assert user.username == "alice"
        assert session.is_authenticated and session.token
        assert session.notifications[-1].title == "Registration successful"

        restored = make_session(token=session.token)
        assert run(restored.load_user()).id == user.id

    def test_failed_login_notifies_and_raises(self, make_session, client):
        register(client, "alice", password="pw")
        session = make_session()

        with pytest.raises(NotAuthenticated):
            run(session.login("alice@example.com", "wrong"))

        n = session.notifications[-1]
        assert (n.title, n.description, n.variant) == ("Login failed", "Invalid email or password", "destructive")
        assert not session.is_authenticated

        assert run(session.login("alice@example.com", "pw")).username == "alice"

    def test_rejected_token_clears_credentials(self, make_session, client):
        body, _ = register(client, "alice")
        session = make_session(token=body["token"])
        run(session.load_user())
        assert session.is_authenticated

        session.api.token = "forged.token"
        assert run(session.like_memory("anything")) is None
        assert session.token is None
        assert session.user is None
        assert session.notifications[-1].variant == "destructive"

    def test_logout(self, make_session):
        session = make_session()
        run(session.register("alice", "alice@example.com", "pw"))
        session.logout()
        assert session.token is None and not session.is_authenticated


class TestFeedSync:

    def test_create_prepends_to_global_feed_only(self, make_session, client):
        _, headers = register(client, "bob")
        create_memory(client, headers, title="older")

        session = make_session()
        me = run(session.register("alice", "alice@example.com", "pw"))
        run(session.fetch_memories())
        run(session.fetch_user_memories("alice"))
        assert [m.title for m in session.state.feed.items] == ["older"]
        assert session.state.profile_feed.items == []

        created = run(session.create_memory(title="Beach Day", description="Sun", tags=["Travel"]))
        assert created.creator.id == me.id
        assert created.tags == ["travel"]
        assert [m.title for m in session.state.feed.items] == ["Beach Day", "older"]
        assert session.state.profile_feed.items == []

    def test_like_and_comment_sync_both_caches(self, make_session):
        session = make_session()
        me = run(session.register("alice", "alice@example.com", "pw"))
        created = run(session.create_memory(title="Beach Day", description="Sun"))
        run(session.fetch_user_memories("alice"))

        assert run(session.like_memory(created.id)) == [me.id]
        assert session.state.feed.get(created.id).likes == [me.id]
        assert session.state.profile_feed.get(created.id).likes == [me.id]

        comments = run(session.add_comment(created.id, "nice!"))
        assert [c.text for c in comments] == ["nice!"]
        assert session.state.feed.get(created.id).comments[0].text == "nice!"
        assert session.state.profile_feed.get(created.id).comments[0].text == "nice!"

    def test_update_and_delete_sync_both_caches(self, make_session):
        session = make_session()
        run(session.register("alice", "alice@example.com", "pw"))
        created = run(session.create_memory(title="Beach Day", description="Sun"))
        run(session.fetch_user_memories("alice"))

        run(session.update_memory(created.id, title="Sunset"))
        assert session.state.feed.get(created.id).title == "Sunset"
        assert session.state.profile_feed.get(created.id).title == "Sunset"

        assert run(session.delete_memory(created.id)) is True
        assert session.state.feed.items == []
        assert session.state.profile_feed.items == []

    def test_load_more_appends_next_page(self, make_session, client):
        _, headers = register(client, "bob")
        for i in range(3):
            create_memory(client, headers, title=f"m{i}")

        session = make_session()
        run(session.fetch_memories())
        assert [m.title for m in session.state.feed.items] == ["m2", "m1"]
        assert session.state.has_more

        run(session.load_more())
        assert [m.title for m in session.state.feed.items] == ["m2", "m1", "m0"]
        assert not session.state.has_more

    def test_unauthenticated_like_is_ignored(self, make_session, client):
        _, headers = register(client, "bob")
        memory = create_memory(client, headers)

        session = make_session()
        assert run(session.like_memory(memory["id"])) is None
        assert session.notifications == []


class TestFollowAndErrors:

    def test_toggle_follow_updates_viewed_profile(self, make_session, client):
        register(client, "bob")
        session = make_session()
        me = run(session.register("alice", "alice@example.com", "pw"))
        run(session.fetch_user_memories("bob"))
        bob_id = session.profile.id

        assert run(session.toggle_follow(bob_id)) is True
        assert session.profile.followers == [me.id]
        assert session.notifications[-1].description == "You are now following bob"

        assert run(session.toggle_follow(bob_id)) is False
        assert session.profile.followers == []
        assert session.notifications[-1].description == "You are no longer following bob"

    def test_follow_requires_login(self, make_session):
        session = make_session()
        assert run(session.toggle_follow("someone")) is None
        assert session.notifications[-1].title == "Authentication required"

    def test_error_becomes_dismissable_notification(self, make_session):
        session = make_session()
        run(session.register("alice", "alice@example.com", "pw"))
        created = run(session.create_memory(title="Beach Day", description="Sun"))

        assert run(session.add_comment(created.id, "   ")) is None
        n = session.notifications[-1]
        assert (n.title, n.variant) == ("Comment failed", "destructive")

        session.dismiss(n.id)
        assert n.id not in [x.id for x in session.notifications]

    def test_duplicate_registration_raises_typed_error(self, make_session, client):
        register(client, "alice")
        with pytest.raises(ValidationFailed):
            run(make_session().register("alice", "new@example.com", "pw"))

    def test_pending_control_ignores_duplicate_submission(self, make_session):
        session = make_session()
        calls = []

        async def slow():
            calls.append(1)
            await asyncio.sleep(0.01)
            return "done"

        async def both():
            return await asyncio.gather(
                session._run("like", slow, failure_title="x"),
                session._run("like", slow, failure_title="x"),
                session._run("other", slow, failure_title="x"),
            )

        assert run(both()) == ["done", None, "done"]
        assert len(calls) == 2
        assert not session.is_pending("like")
