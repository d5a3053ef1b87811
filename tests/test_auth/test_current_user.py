"""Tests for auth/user.py: current-user adapter."""

from __future__ import annotations

import asyncio

import pytest

from pocketstate.auth.user import CurrentUserState
from pocketstate.core.cell import UNSET
from pocketstate.errors import StoreError
from tests.conftest import loading_while_pending


class TestAttach:
    def test_unset_until_first_attach(self, store) -> None:
        user = CurrentUserState(store)
        assert user.data is UNSET

    def test_attach_seeds_anonymous(self, store) -> None:
        user = CurrentUserState(store)
        seen: list = []
        user.attach(seen.append)
        assert user.data is None
        assert seen == [None]
        assert user.is_logged_in is False

    def test_attach_seeds_existing_session(self, store) -> None:
        store.auth_store.save("tok_1", {"id": "u1"})
        user = CurrentUserState(store)
        user.attach(lambda _value: None)
        assert user.data == {"id": "u1"}
        assert user.is_logged_in is True

    def test_listener_lifetime_follows_attach_count(self, store) -> None:
        user = CurrentUserState(store)
        detach_a = user.attach(lambda _value: None)
        detach_b = user.attach(lambda _value: None)
        assert store.auth_store.listener_count == 1

        detach_a()
        assert store.auth_store.listener_count == 1
        detach_b()
        assert store.auth_store.listener_count == 0

    def test_detached_state_stops_following(self, store) -> None:
        user = CurrentUserState(store)
        user.attach(lambda _value: None)()
        store.auth_store.save("tok_1", {"id": "u1"})
        assert user.data is None


class TestLogin:
    def test_login_publishes_identity(self, store) -> None:
        user = CurrentUserState(store)
        seen: list = []
        user.attach(seen.append)

        record = asyncio.run(user.login("ada@example.com", "s3cret"))

        assert record["id"] == "u1"
        assert "password" not in record
        assert user.data["id"] == "u1"
        assert seen[-1]["email"] == "ada@example.com"
        assert user.is_logged_in is True
        assert user.loading is False

    def test_loading_during_login(self, slow_store) -> None:
        user = CurrentUserState(slow_store)

        pending, record = asyncio.run(
            loading_while_pending(user, user.login("ada@example.com", "s3cret"))
        )

        assert pending is True
        assert record["id"] == "u1"
        assert user.loading is False

    def test_login_failure_propagates(self, store) -> None:
        user = CurrentUserState(store)
        user.attach(lambda _value: None)

        with pytest.raises(StoreError):
            asyncio.run(user.login("ada@example.com", "wrong"))

        assert user.loading is False
        assert isinstance(user.error, StoreError)
        assert user.data is None
        assert user.is_logged_in is False

    def test_custom_auth_collection(self, store) -> None:
        store.seed("admins", [{"id": "ad1", "username": "root", "password": "pw"}])
        user = CurrentUserState(store, collection="admins")
        record = asyncio.run(user.login("root", "pw"))
        assert record["id"] == "ad1"


class TestLogout:
    def test_logout_goes_through_listener(self, store) -> None:
        user = CurrentUserState(store)
        seen: list = []
        user.attach(seen.append)

        async def scenario() -> None:
            await user.login("ada@example.com", "s3cret")
            await user.logout()

        asyncio.run(scenario())
        assert user.data is None
        assert seen[-1] is None
        assert user.is_logged_in is False
        assert user.loading is False
