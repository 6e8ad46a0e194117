"""Unit tests for StoryService: gated reads, view counting and discovery."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from storyswap.models.story import StoryStatus, SwapSettings
from storyswap.models.swap import SwapStatus, UnlockReason
from storyswap.models.user import ActingUser
from storyswap.providers.place.sqlite_place_provider import SQLitePlaceProvider
from storyswap.providers.story.sqlite_story_provider import SQLiteStoryProvider
from storyswap.providers.swap.sqlite_swap_provider import SQLiteSwapProvider
from storyswap.providers.user.sqlite_user_provider import SQLiteUserProvider
from storyswap.services.scoring_service import ScoringService
from storyswap.services.story_materializer import StoryMaterializer
from storyswap.services.story_service import StoryService
from storyswap.services.unlock_service import UnlockService
from storyswap.utils.errors import ForbiddenError, NotFoundError, ValidationFailedError
from tests.conftest import GOOD_TEXT, SUBMISSION_TEXT, make_story, make_submission, make_swap


@pytest.fixture
async def env(tmp_db):
    story_store = SQLiteStoryProvider(db_path=tmp_db)
    place_store = SQLitePlaceProvider(db_path=tmp_db)
    swap_store = SQLiteSwapProvider(db_path=tmp_db)
    user_store = SQLiteUserProvider(db_path=tmp_db)
    for provider in (story_store, place_store, swap_store, user_store):
        await provider.initialize()

    scoring = ScoringService(story_store, place_store)
    materializer = StoryMaterializer(story_store, place_store, user_store, scoring)
    service = StoryService(story_store, place_store, UnlockService(swap_store), materializer, scoring)
    return SimpleNamespace(
        story_store=story_store,
        place_store=place_store,
        swap_store=swap_store,
        materializer=materializer,
        service=service,
    )


# ─── Gated reads ──────────────────────────────────────────────────

class TestGetStory:
    @pytest.mark.asyncio
    async def test_locked_story_is_redacted_and_not_counted(self, env):
        await env.story_store.create_story(make_story())

        story, decision = await env.service.get_story("story-1", "reader-1")

        assert decision.unlocked is False
        assert decision.reason == UnlockReason.SWAP_REQUIRED
        assert story.content.text.body != GOOD_TEXT
        assert (await env.story_store.get_story("story-1")).engagement.views == 0

    @pytest.mark.asyncio
    async def test_anonymous_reader_gets_redacted_story(self, env):
        await env.story_store.create_story(make_story())
        story, decision = await env.service.get_story("story-1", None)
        assert decision.unlocked is False
        assert story.content.media == []

    @pytest.mark.asyncio
    async def test_completed_swap_shows_full_story_and_counts_view(self, env):
        await env.story_store.create_story(make_story())
        await env.swap_store.insert_swap(make_swap(status=SwapStatus.COMPLETED))

        story, decision = await env.service.get_story("story-1", "reader-1")

        assert decision.reason == UnlockReason.SWAP_COMPLETED
        assert story.content.text.body == GOOD_TEXT
        assert story.engagement.views == 1
        assert story.popularity_score >= 0

    @pytest.mark.asyncio
    async def test_view_is_added_to_tags(self, env):
        published = await env.materializer.publish(
            "author-1", make_submission(tags=["food"]), SwapSettings(requires_swap=False)
        )

        await env.service.get_story(published.story_id, "reader-1")

        tag = await env.place_store.get_tag(published.tag_ids[0])
        assert tag.usage.total_views == 1

    @pytest.mark.asyncio
    async def test_unknown_story(self, env):
        with pytest.raises(NotFoundError):
            await env.service.get_story("nope", "reader-1")

    @pytest.mark.asyncio
    async def test_draft_is_hidden_from_other_readers(self, env):
        await env.story_store.create_story(make_story(status=StoryStatus.DRAFT, published_at=None))
        with pytest.raises(NotFoundError):
            await env.service.get_story("story-1", "reader-1")

        story, decision = await env.service.get_story("story-1", "author-1")
        assert decision.reason == UnlockReason.AUTHOR
        assert story.content.text.body == GOOD_TEXT


# ─── Discovery ────────────────────────────────────────────────────

class TestDiscovery:
    @pytest.mark.asyncio
    async def test_trending_redacts_locked_stories(self, env):
        await env.materializer.publish("author-1", make_submission(text=GOOD_TEXT, coordinates=[]))
        await env.materializer.publish(
            "author-2", make_submission(coordinates=[]), SwapSettings(requires_swap=False)
        )

        stories = await env.service.list_trending("7d")

        assert len(stories) == 2
        bodies = {s.author_id: s.content.text.body for s in stories}
        assert bodies["author-2"] == SUBMISSION_TEXT
        assert bodies["author-1"] != GOOD_TEXT
        assert bodies["author-1"].endswith("...")

    @pytest.mark.asyncio
    async def test_unknown_timeframe_falls_back(self, env):
        await env.materializer.publish("author-1", make_submission())
        assert len(await env.service.list_trending("forever")) == 1

    @pytest.mark.asyncio
    async def test_popular_locations_and_trending_tags(self, env):
        await env.materializer.publish("author-1", make_submission(tags=["food"]))

        locations = await env.service.list_popular_locations()
        assert len(locations) == 1
        assert locations[0].stories_count == 1

        tags = await env.service.list_trending_tags()
        assert [t.name for t in tags] == ["food"]


# ─── Writes ───────────────────────────────────────────────────────

class TestCreateAndLike:
    @pytest.mark.asyncio
    async def test_create_story(self, env):
        author = ActingUser(user_id="author-1")
        story = await env.service.create_story(author, make_submission(title="<b>Market</b> night"))
        assert story.title == "Market night"
        assert story.status == StoryStatus.PUBLISHED

    @pytest.mark.asyncio
    async def test_create_story_requires_title(self, env):
        with pytest.raises(ValidationFailedError):
            await env.service.create_story(ActingUser(user_id="author-1"), make_submission(title=""))

    @pytest.mark.asyncio
    async def test_create_story_requires_content(self, env):
        with pytest.raises(ValidationFailedError):
            await env.service.create_story(ActingUser(user_id="author-1"), make_submission(text=None))

    @pytest.mark.asyncio
    async def test_banned_user_cannot_publish(self, env):
        with pytest.raises(ForbiddenError):
            await env.service.create_story(
                ActingUser(user_id="author-1", is_banned=True), make_submission()
            )

    @pytest.mark.asyncio
    async def test_like_counts_and_redacts_for_locked_reader(self, env):
        await env.story_store.create_story(make_story())

        story = await env.service.like_story("story-1", ActingUser(user_id="reader-1"))

        assert story.engagement.likes == 1
        assert story.content.text.body != GOOD_TEXT
        assert (await env.story_store.get_story("story-1")).engagement.likes == 1

    @pytest.mark.asyncio
    async def test_like_unknown_story(self, env):
        with pytest.raises(NotFoundError):
            await env.service.like_story("nope", ActingUser(user_id="reader-1"))
