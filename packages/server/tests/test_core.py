"""
Tests for configuration, logging and session management.
"""

from __future__ import annotations

import pytest
import structlog
from structlog.testing import capture_logs

from taskpayable.core.config import Settings
from taskpayable.core.database import get_session_context
from taskpayable.core.logging import configure_logging, token_hint
from taskpayable.models.user import User
from taskpayable.services import invitations
from taskpayable.services.users import get_owner
from taskpayable_shared.schemas.common import Role


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.invitation_token_bytes == 16
        assert settings.log_format in ("json", "text")

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("TP_LOG_LEVEL", "debug")
        monkeypatch.setenv("TP_INVITATION_TOKEN_MAX_ATTEMPTS", "9")
        settings = Settings()
        assert settings.log_level == "debug"
        assert settings.invitation_token_max_attempts == 9


class TestLogging:
    def test_configure_text(self):
        configure_logging("debug", "text")
        structlog.get_logger().debug("test.event", key="value")

    def test_level_names_filter(self):
        try:
            configure_logging("WARNING", "json")
            logger = structlog.get_logger()
            with capture_logs() as logs:
                logger.info("test.dropped")
                logger.warning("test.kept")
            assert [e["event"] for e in logs] == ["test.kept"]
        finally:
            structlog.reset_defaults()

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            configure_logging("chatty", "text")

    def test_token_hint_never_reveals_token(self):
        token = invitations.generate_token()
        hint = token_hint(token)
        assert hint.startswith(token[:6])
        assert token not in hint
        assert token_hint("") == ""

    async def test_issue_logs_only_token_prefix(self, session, owner, make_org, identity_of):
        org = await make_org()
        with capture_logs() as logs:
            link = await invitations.issue(session, await identity_of(owner), org.id)
        [event] = [e for e in logs if e["event"] == "invitation.issued"]
        assert event["token"] != link.token
        assert event["org_id"] == str(org.id)


class TestSessionContext:
    async def test_commits_on_success(self, session_factory):
        async with get_session_context(session_factory) as s:
            s.add(User(username="kim", email="kim@example.com", full_name="Kim", role=Role.MEMBER.value))

        async with session_factory() as s:
            assert await s.get(User, (await _user_id(s, "kim"))) is not None

    async def test_rolls_back_on_error(self, session_factory):
        with pytest.raises(RuntimeError):
            async with get_session_context(session_factory) as s:
                s.add(
                    User(
                        username="boss",
                        email="boss@example.com",
                        full_name="Boss",
                        role=Role.OWNER.value,
                        owner_flag=True,
                        is_approved=True,
                    )
                )
                await s.flush()
                raise RuntimeError("boom")

        async with session_factory() as s:
            assert await get_owner(s) is None


async def _user_id(session, username):
    from sqlmodel import select

    result = await session.execute(select(User.id).where(User.username == username))
    return result.scalar_one()
