"""Tests for the session provider."""

import pytest

from notes_bot.session import Session, SessionProvider


class TestSessionProvider:
    def test_initial_state(self):
        provider = SessionProvider()

        assert provider.current_owner_id is None
        assert provider.session_loading is False
        assert not provider.session.ready

    def test_sign_in_makes_session_ready(self):
        provider = SessionProvider()
        provider.begin_loading()
        assert provider.session_loading

        provider.sign_in("u1")

        assert provider.session == Session(owner_id="u1", loading=False)
        assert provider.session.ready

    def test_listeners_get_every_change(self):
        provider = SessionProvider()
        seen = []
        provider.subscribe(seen.append)

        provider.begin_loading()
        provider.sign_in("u1")
        provider.sign_in("u1")
        provider.sign_out()

        assert seen == [
            Session(owner_id=None, loading=True),
            Session(owner_id="u1", loading=False),
            Session(owner_id=None, loading=False),
        ]

    def test_unsubscribe(self):
        provider = SessionProvider()
        seen = []
        unsubscribe = provider.subscribe(seen.append)
        unsubscribe()
        unsubscribe()

        provider.sign_in("u1")

        assert seen == []

    def test_empty_owner_is_rejected(self):
        with pytest.raises(ValueError):
            SessionProvider(owner_id="")
        with pytest.raises(ValueError):
            SessionProvider().sign_in("")
