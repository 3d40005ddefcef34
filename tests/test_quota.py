"""Tests for the hourly remix quota and credit admission checks."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from remix.errors import InsufficientCreditsError, QuotaExceededError, ValidationError
from remix.quota import check_credits, check_quota, enforce_admission
from remixhub.entities.remix_history import RemixHistory, RemixStatus

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


async def _add_history(session_factory, user_id, minutes_ago, status=RemixStatus.COMPLETED):
    async with session_factory() as db:
        db.add(RemixHistory(
            user_id=user_id,
            source_repo="octo/src",
            target_repo="octo/dst",
            status=status.value,
            created_at=NOW - timedelta(minutes=minutes_ago),
        ))
        await db.commit()


class TestCheckQuota:
    @pytest.mark.asyncio
    async def test_allows_under_limit(self, session_factory, create_profile):
        user = await create_profile()
        await _add_history(session_factory, user, 10)
        await _add_history(session_factory, user, 20, RemixStatus.PROCESSING)

        async with session_factory() as db:
            decision = await check_quota(db, user, now=NOW)
        assert decision.allowed is True
        assert decision.recent_count == 2

    @pytest.mark.asyncio
    async def test_fourth_attempt_gets_exact_wait(self, session_factory, create_profile):
        user = await create_profile()
        for minutes_ago in (45, 30, 5):
            await _add_history(session_factory, user, minutes_ago)

        async with session_factory() as db:
            decision = await check_quota(db, user, now=NOW)
        assert decision.allowed is False
        # oldest started 45 min ago -> leaves the window in 15 min
        assert decision.wait_minutes == 15

    @pytest.mark.asyncio
    async def test_wait_rounds_up_partial_minutes(self, session_factory, create_profile):
        user = await create_profile()
        for minutes_ago in (59.5, 10, 1):
            await _add_history(session_factory, user, minutes_ago)

        async with session_factory() as db:
            decision = await check_quota(db, user, now=NOW)
        assert decision.allowed is False
        assert decision.wait_minutes == 1

    @pytest.mark.asyncio
    async def test_job_exactly_one_window_old_has_left(self, session_factory, create_profile):
        user = await create_profile()
        for minutes_ago in (60, 30, 5):
            await _add_history(session_factory, user, minutes_ago)

        async with session_factory() as db:
            decision = await check_quota(db, user, now=NOW)
        assert decision.allowed is True
        assert decision.recent_count == 2

    @pytest.mark.asyncio
    async def test_wait_just_inside_the_window(self, session_factory, create_profile):
        user = await create_profile()
        for minutes_ago in (59.99, 30, 5):
            await _add_history(session_factory, user, minutes_ago)

        async with session_factory() as db:
            decision = await check_quota(db, user, now=NOW)
        assert decision.allowed is False
        assert decision.wait_minutes == 1

    @pytest.mark.asyncio
    async def test_window_slides_with_now(self, session_factory, create_profile):
        user = await create_profile()
        for minutes_ago in (45, 30, 5):
            await _add_history(session_factory, user, minutes_ago)

        async with session_factory() as db:
            later = await check_quota(db, user, now=NOW + timedelta(minutes=16))
        assert later.allowed is True
        assert later.recent_count == 2

    @pytest.mark.asyncio
    async def test_failed_and_old_jobs_do_not_count(self, session_factory, create_profile):
        user = await create_profile()
        await _add_history(session_factory, user, 5, RemixStatus.ERROR)
        await _add_history(session_factory, user, 6, RemixStatus.ERROR)
        await _add_history(session_factory, user, 61)
        await _add_history(session_factory, user, 90)
        await _add_history(session_factory, user, 15)

        async with session_factory() as db:
            decision = await check_quota(db, user, now=NOW)
        assert decision.allowed is True
        assert decision.recent_count == 1

    @pytest.mark.asyncio
    async def test_other_users_jobs_do_not_count(self, session_factory, create_profile):
        user = await create_profile("user_1")
        other = await create_profile("user_2")
        for minutes_ago in (1, 2, 3):
            await _add_history(session_factory, other, minutes_ago)

        async with session_factory() as db:
            decision = await check_quota(db, user, now=NOW)
        assert decision.allowed is True


class TestCheckCredits:
    @pytest.mark.asyncio
    async def test_one_credit_is_enough(self, session_factory, create_profile):
        user = await create_profile(credits=1)
        async with session_factory() as db:
            assert await check_credits(db, user) is True

    @pytest.mark.asyncio
    async def test_zero_credits_is_not(self, session_factory, create_profile):
        user = await create_profile(credits=0)
        async with session_factory() as db:
            assert await check_credits(db, user) is False

    @pytest.mark.asyncio
    async def test_missing_profile(self, session_factory):
        async with session_factory() as db:
            with pytest.raises(ValidationError, match="Perfil"):
                await check_credits(db, "ghost")


class TestEnforceAdmission:
    @pytest.mark.asyncio
    async def test_quota_message_and_no_new_rows(self, session_factory, create_profile):
        user = await create_profile()
        for minutes_ago in (45, 30, 5):
            await _add_history(session_factory, user, minutes_ago)

        async with session_factory() as db:
            with pytest.raises(QuotaExceededError) as exc_info:
                await enforce_admission(db, user, now=NOW)
            count = await db.scalar(select(func.count(RemixHistory.id)))

        assert exc_info.value.wait_minutes == 15
        assert "Tente novamente em 15 minutos." in str(exc_info.value)
        assert count == 3

    @pytest.mark.asyncio
    async def test_singular_minute(self, session_factory, create_profile):
        user = await create_profile()
        for minutes_ago in (59.5, 10, 1):
            await _add_history(session_factory, user, minutes_ago)

        async with session_factory() as db:
            with pytest.raises(QuotaExceededError, match="em 1 minuto\\.$"):
                await enforce_admission(db, user, now=NOW)

    @pytest.mark.asyncio
    async def test_quota_checked_before_credits(self, session_factory, create_profile):
        user = await create_profile(credits=0)
        for minutes_ago in (3, 2, 1):
            await _add_history(session_factory, user, minutes_ago)

        async with session_factory() as db:
            with pytest.raises(QuotaExceededError):
                await enforce_admission(db, user, now=NOW)

    @pytest.mark.asyncio
    async def test_no_credits(self, session_factory, create_profile):
        user = await create_profile(credits=0)
        async with session_factory() as db:
            with pytest.raises(InsufficientCreditsError, match="Créditos insuficientes"):
                await enforce_admission(db, user, now=NOW)
