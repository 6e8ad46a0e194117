"""Unit tests for SQLiteSwapProvider: uniqueness, compare-and-set and reaping."""

from __future__ import annotations

from datetime import timedelta

import pytest

from storyswap.models.swap import ModerationResults, SwapMetrics, SwapStatus
from storyswap.providers.swap.sqlite_swap_provider import SQLiteSwapProvider
from tests.conftest import FIXED_NOW, make_swap


@pytest.fixture
async def provider(tmp_db):
    p = SQLiteSwapProvider(db_path=tmp_db)
    await p.initialize()
    return p


# ─── Insert ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_insert_and_get(provider):
    swap = make_swap()
    result = await provider.insert_swap(swap)
    assert result.inserted is True

    stored = await provider.get_swap("swap-1")
    assert stored.user_id == "reader-1"
    assert stored.story_to_unlock_id == "story-1"
    assert stored.status == SwapStatus.PENDING
    assert stored.submission_data == swap.submission_data
    assert stored.expires_at == swap.expires_at
    assert stored.created_at == FIXED_NOW


@pytest.mark.asyncio
async def test_second_insert_for_pair_returns_existing(provider):
    await provider.insert_swap(make_swap("swap-1"))
    result = await provider.insert_swap(make_swap("swap-2"))

    assert result.inserted is False
    assert result.swap.swap_id == "swap-1"
    assert await provider.get_swap("swap-2") is None


class _WinnerGoneProvider(SQLiteSwapProvider):
    """Deletes the conflicting swap before it can be re-read."""

    async def find_swap(self, user_id, story_id):
        existing = await super().find_swap(user_id, story_id)
        if existing is not None:
            await self.delete_swap(existing.swap_id, statuses=(existing.status,))
        return await super().find_swap(user_id, story_id)


@pytest.mark.asyncio
async def test_conflict_with_vanished_winner_is_not_an_error(tmp_db):
    provider = _WinnerGoneProvider(db_path=tmp_db)
    await provider.initialize()
    await provider.insert_swap(make_swap("swap-1"))

    result = await provider.insert_swap(make_swap("swap-2"))

    assert result.inserted is False
    assert result.swap is None
    assert await provider.get_swap("swap-2") is None


@pytest.mark.asyncio
async def test_same_user_different_story_is_allowed(provider):
    await provider.insert_swap(make_swap("swap-1", story_id="story-1"))
    result = await provider.insert_swap(make_swap("swap-2", story_id="story-2"))
    assert result.inserted is True


# ─── Compare-and-set ──────────────────────────────────────────────

@pytest.mark.asyncio
async def test_save_swap_applies_when_status_matches(provider):
    swap = make_swap()
    await provider.insert_swap(swap)

    completed = swap.model_copy(update={
        "status": SwapStatus.COMPLETED,
        "submitted_story_id": "story-new",
        "metrics": SwapMetrics(processing_time_ms=120),
    })
    assert await provider.save_swap(completed, expected_status=SwapStatus.PENDING) is True

    stored = await provider.get_swap("swap-1")
    assert stored.status == SwapStatus.COMPLETED
    assert stored.submitted_story_id == "story-new"
    assert stored.metrics.processing_time_ms == 120


@pytest.mark.asyncio
async def test_save_swap_refuses_stale_status(provider):
    swap = make_swap()
    await provider.insert_swap(swap)
    rejected = swap.model_copy(update={"status": SwapStatus.REJECTED})
    await provider.save_swap(rejected, expected_status=SwapStatus.PENDING)

    completed = swap.model_copy(update={"status": SwapStatus.COMPLETED})
    assert await provider.save_swap(completed, expected_status=SwapStatus.PENDING) is False
    assert (await provider.get_swap("swap-1")).status == SwapStatus.REJECTED


# ─── Delete ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_delete_guarded_by_status(provider):
    await provider.insert_swap(make_swap())
    assert await provider.delete_swap("swap-1", statuses=(SwapStatus.REJECTED,)) is False
    assert await provider.delete_swap("swap-1", statuses=(SwapStatus.PENDING,)) is True
    assert await provider.find_swap("reader-1", "story-1") is None


# ─── Reaping ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_expire_swaps_is_idempotent(provider):
    old = FIXED_NOW - timedelta(days=2)
    await provider.insert_swap(make_swap("swap-pending", created_at=old))
    await provider.insert_swap(make_swap(
        "swap-rejected", story_id="story-2", created_at=old, status=SwapStatus.REJECTED
    ))
    await provider.insert_swap(make_swap(
        "swap-done", story_id="story-3", created_at=old, status=SwapStatus.COMPLETED
    ))

    assert await provider.expire_swaps(FIXED_NOW) == 2
    assert await provider.expire_swaps(FIXED_NOW) == 0
    assert (await provider.get_swap("swap-done")).status == SwapStatus.COMPLETED
    assert (await provider.get_swap("swap-rejected")).status == SwapStatus.EXPIRED


# ─── Queries ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_and_count_user_swaps_by_status(provider):
    await provider.insert_swap(make_swap("swap-1", story_id="story-1"))
    await provider.insert_swap(make_swap(
        "swap-2", story_id="story-2", status=SwapStatus.COMPLETED,
        created_at=FIXED_NOW + timedelta(minutes=1),
    ))
    await provider.insert_swap(make_swap("swap-3", user_id="reader-2"))

    assert await provider.count_user_swaps("reader-1") == 2
    assert await provider.count_user_swaps("reader-1", status=SwapStatus.COMPLETED) == 1
    swaps = await provider.list_user_swaps("reader-1")
    assert [s.swap_id for s in swaps] == ["swap-2", "swap-1"]


@pytest.mark.asyncio
async def test_review_queue(provider):
    await provider.insert_swap(make_swap(
        "swap-flagged",
        status=SwapStatus.REJECTED,
        moderation_results=ModerationResults(flagged=True, reasons=["spam"], review_required=True),
    ))
    await provider.insert_swap(make_swap("swap-plain", story_id="story-2", status=SwapStatus.REJECTED))

    queue = await provider.list_review_queue()
    assert [s.swap_id for s in queue] == ["swap-flagged"]


@pytest.mark.asyncio
async def test_status_breakdown(provider):
    await provider.insert_swap(make_swap(
        "swap-1", status=SwapStatus.COMPLETED, metrics=SwapMetrics(processing_time_ms=100)
    ))
    await provider.insert_swap(make_swap(
        "swap-2", story_id="story-2", status=SwapStatus.COMPLETED,
        metrics=SwapMetrics(processing_time_ms=300),
    ))
    await provider.insert_swap(make_swap("swap-3", story_id="story-3"))
    await provider.insert_swap(make_swap(
        "swap-old", story_id="story-4", created_at=FIXED_NOW - timedelta(days=30)
    ))

    rows = await provider.get_status_breakdown(FIXED_NOW - timedelta(days=1))
    by_status = {row["status"]: row for row in rows}
    assert by_status["completed"]["count"] == 2
    assert by_status["completed"]["avg_processing_ms"] == pytest.approx(200.0)
    assert by_status["pending"]["count"] == 1
    assert by_status["pending"]["avg_processing_ms"] is None
