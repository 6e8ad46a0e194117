"""FastAPI routes for StorySwap.

Services are read from ``request.app.state`` (populated at startup by
``build_services`` in storyswap/main.py).  The acting user comes from the
identity dependencies in ``storyswap/api/identity.py``.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                                   Method  Access
# ─────────────────────────────────────────────────────────────────────
# /api/v1/swaps/{story_id}/request-unlock    POST    user
# /api/v1/swaps/user/me                      GET     user
# /api/v1/swaps/stats                        GET     admin
# /api/v1/swaps/review-queue                 GET     admin
# /api/v1/swaps/reap                         POST    admin
# /api/v1/swaps/{swap_id}                    GET     owner or admin
# /api/v1/swaps/{swap_id}                    DELETE  owner
# /api/v1/swaps/{swap_id}/retry              POST    admin
# /api/v1/stories                            POST    user
# /api/v1/stories/trending                   GET     public
# /api/v1/stories/{story_id}                 GET     public (redacted if locked)
# /api/v1/stories/{story_id}/like            POST    user
# /api/v1/tags/trending                      GET     public
# /api/v1/locations/popular                  GET     public
# /api/v1/health                             GET     public
#
# Literal segments (``user/me``, ``stats``, ``trending``) are declared
# before the ``{swap_id}`` / ``{story_id}`` catch-alls.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import math
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Query, Request

from storyswap.api.identity import ActingUserDep, AdminUserDep, OptionalUserDep
from storyswap.api.schemas import (
    CreateStoryRequest,
    ErrorResponse,
    HealthResponse,
    LocationRequest,
    LocationResponse,
    MessageResponse,
    PaginationResponse,
    ReapResponse,
    RequestUnlockRequest,
    StoryContentRequest,
    StoryDetailResponse,
    StoryResponse,
    SwapListResponse,
    SwapResponse,
    SwapStatsBreakdownResponse,
    SwapStatsResponse,
    TagResponse,
    UnlockResponse,
)
from storyswap.models.place import Location, Tag
from storyswap.models.story import MediaItem, Story, SwapRequirements, SwapSettings
from storyswap.models.swap import (
    Submission,
    SubmissionContent,
    SubmissionLocation,
    Swap,
    SwapStatus,
    UnlockOutcome,
)
from storyswap.services.story_service import StoryService
from storyswap.services.swap_service import SwapService
from storyswap.utils.clock import utc_now
from storyswap.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_VERSION = "0.1.0"
_MAX_PAGE_SIZE = 100

_ERRORS: dict[int | str, dict[str, Any]] = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


# ── Service accessors ─────────────────────────────────────────────────
def _get_swap_service(request: Request) -> SwapService:
    svc = getattr(request.app.state, "swap_service", None)
    if svc is None:
        raise HTTPException(status_code=503, detail="Swap service unavailable")
    return svc


def _get_story_service(request: Request) -> StoryService:
    svc = getattr(request.app.state, "story_service", None)
    if svc is None:
        raise HTTPException(status_code=503, detail="Story service unavailable")
    return svc


# ── Mapping helpers ───────────────────────────────────────────────────
def _to_submission(
    title: str,
    content: StoryContentRequest,
    location: LocationRequest | None,
    tags: list[str],
) -> Submission:
    return Submission(
        title=title,
        content=SubmissionContent(
            type=content.type,
            text=content.text,
            media=[MediaItem(**item.model_dump()) for item in content.media],
        ),
        location=SubmissionLocation(**location.model_dump()) if location else None,
        tags=tags,
    )


def _outcome_to_response(outcome: UnlockOutcome) -> UnlockResponse:
    return UnlockResponse(**outcome.model_dump())


def _swap_to_response(swap: Swap, *, include_moderation: bool) -> SwapResponse:
    return SwapResponse(
        swap_id=swap.swap_id,
        user_id=swap.user_id,
        story_to_unlock_id=swap.story_to_unlock_id,
        submitted_story_id=swap.submitted_story_id,
        status=swap.status,
        title=swap.submission_data.title,
        validation=swap.validation,
        review_required=swap.moderation_results.review_required,
        moderation=swap.moderation_results if include_moderation else None,
        metrics=swap.metrics,
        expires_at=swap.expires_at,
        created_at=swap.created_at,
        updated_at=swap.updated_at,
    )


def _story_to_response(story: Story) -> StoryResponse:
    return StoryResponse(**story.model_dump())


def _tag_to_response(tag: Tag) -> TagResponse:
    return TagResponse(
        tag_id=tag.tag_id,
        name=tag.name,
        display_name=tag.display_name,
        category=tag.category,
        total_stories=tag.usage.total_stories,
        active_stories=tag.usage.active_stories,
        total_views=tag.usage.total_views,
        popularity_score=tag.popularity_score,
        is_trending=tag.trending.is_trending,
        trending_score=tag.trending.score,
        trending_since=tag.trending.since,
    )


def _location_to_response(location: Location) -> LocationResponse:
    return LocationResponse(
        location_id=location.location_id,
        coordinates=[location.longitude, location.latitude],
        address=location.address,
        stories_count=location.stories_count,
        popularity_score=location.popularity_score,
        last_story_at=location.last_story_at,
    )


# ---------------------------------------------------------------------------
# Swaps
# ---------------------------------------------------------------------------


@router.post(
    "/swaps/{story_id}/request-unlock",
    response_model=UnlockResponse,
    responses=_ERRORS,
    summary="Submit a story to unlock another",
)
async def request_unlock(
    request: Request,
    story_id: str,
    body: RequestUnlockRequest,
    user: ActingUserDep,
) -> UnlockResponse:
    """Swap a submitted story for access to ``story_id``."""
    svc = _get_swap_service(request)
    submitted = body.submitted_story
    submission = _to_submission(
        submitted.title, submitted.content, submitted.location, submitted.tags
    )
    outcome = await svc.request_unlock(user, story_id, submission)
    return _outcome_to_response(outcome)


@router.get("/swaps/user/me", response_model=SwapListResponse, responses=_ERRORS)
async def list_my_swaps(
    request: Request,
    user: ActingUserDep,
    status: SwapStatus | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1),
) -> SwapListResponse:
    """The acting user's swap history, newest first."""
    limit = min(limit, _MAX_PAGE_SIZE)
    svc = _get_swap_service(request)
    swaps, total = await svc.list_user_swaps(user.user_id, status=status, page=page, limit=limit)
    return SwapListResponse(
        swaps=[_swap_to_response(s, include_moderation=user.is_admin) for s in swaps],
        pagination=PaginationResponse(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if total else 0,
        ),
    )


@router.get("/swaps/stats", response_model=SwapStatsResponse, responses=_ERRORS)
async def swap_stats(
    request: Request,
    admin: AdminUserDep,
    timeframe: str = "7d",
) -> SwapStatsResponse:
    """Swap counts and success rate for swaps created within the timeframe."""
    stats = await _get_swap_service(request).swap_stats(timeframe)
    return SwapStatsResponse(
        timeframe=stats.timeframe,
        total=stats.total,
        completed=stats.completed,
        pending=stats.pending,
        rejected=stats.rejected,
        expired=stats.expired,
        success_rate=stats.success_rate,
        breakdown=[SwapStatsBreakdownResponse(**b.model_dump()) for b in stats.breakdown],
        generated_at=utc_now(),
    )


@router.get("/swaps/review-queue", response_model=list[SwapResponse], responses=_ERRORS)
async def review_queue(
    request: Request,
    admin: AdminUserDep,
    limit: int = Query(default=50, ge=1, le=_MAX_PAGE_SIZE),
) -> list[SwapResponse]:
    """Rejected swaps waiting for a moderator."""
    swaps = await _get_swap_service(request).review_queue(limit)
    return [_swap_to_response(s, include_moderation=True) for s in swaps]


@router.post("/swaps/reap", response_model=ReapResponse, responses=_ERRORS)
async def reap_swaps(request: Request, admin: AdminUserDep) -> ReapResponse:
    """Expire every pending or rejected swap past its deadline."""
    reaped = await _get_swap_service(request).reap()
    return ReapResponse(reaped=reaped)


@router.get("/swaps/{swap_id}", response_model=SwapResponse, responses=_ERRORS)
async def get_swap(request: Request, swap_id: str, user: ActingUserDep) -> SwapResponse:
    swap = await _get_swap_service(request).get_swap(swap_id, user)
    return _swap_to_response(swap, include_moderation=user.is_admin)


@router.delete("/swaps/{swap_id}", response_model=MessageResponse, responses=_ERRORS)
async def cancel_swap(request: Request, swap_id: str, user: ActingUserDep) -> MessageResponse:
    """Cancel the acting user's own pending swap."""
    await _get_swap_service(request).cancel_swap(swap_id, user)
    return MessageResponse(message="Swap cancelled successfully")


@router.post("/swaps/{swap_id}/retry", response_model=UnlockResponse, responses=_ERRORS)
async def retry_swap(request: Request, swap_id: str, user: ActingUserDep) -> UnlockResponse:
    """Re-run a rejected swap through validation and moderation (admin only)."""
    outcome = await _get_swap_service(request).retry_swap(swap_id, user)
    return _outcome_to_response(outcome)


# ---------------------------------------------------------------------------
# Stories
# ---------------------------------------------------------------------------


@router.post("/stories", response_model=StoryResponse, status_code=201, responses=_ERRORS)
async def create_story(request: Request, body: CreateStoryRequest, user: ActingUserDep) -> StoryResponse:
    """Publish a story directly, without a swap."""
    swap_settings = None
    if body.swap_settings is not None:
        s = body.swap_settings
        swap_settings = SwapSettings(
            is_locked=s.is_locked,
            requires_swap=s.requires_swap,
            requirements=SwapRequirements(
                min_content_length=s.min_content_length,
                requires_location=s.requires_location,
                allowed_content_types=s.allowed_content_types,
            ),
        )
    submission = _to_submission(body.title, body.content, body.location, body.tags)
    story = await _get_story_service(request).create_story(user, submission, swap_settings)
    return _story_to_response(story)


@router.get("/stories/trending", response_model=list[StoryResponse])
async def trending_stories(
    request: Request,
    timeframe: str = "7d",
    limit: int = Query(default=20, ge=1, le=_MAX_PAGE_SIZE),
) -> list[StoryResponse]:
    """Top published stories from the timeframe (1d, 3d, 7d or 30d), redacted."""
    stories = await _get_story_service(request).list_trending(timeframe, limit)
    return [_story_to_response(s) for s in stories]


@router.get("/stories/{story_id}", response_model=StoryDetailResponse, responses=_ERRORS)
async def get_story(request: Request, story_id: str, user: OptionalUserDep) -> StoryDetailResponse:
    """A single story; locked stories come back with only their snippet."""
    story, decision = await _get_story_service(request).get_story(
        story_id, user.user_id if user else None
    )
    return StoryDetailResponse(
        story=_story_to_response(story),
        is_unlocked=decision.unlocked,
        unlock_reason=decision.reason,
    )


@router.post("/stories/{story_id}/like", response_model=StoryResponse, responses=_ERRORS)
async def like_story(request: Request, story_id: str, user: ActingUserDep) -> StoryResponse:
    story = await _get_story_service(request).like_story(story_id, user)
    return _story_to_response(story)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


@router.get("/tags/trending", response_model=list[TagResponse])
async def trending_tags(
    request: Request,
    limit: int = Query(default=20, ge=1, le=_MAX_PAGE_SIZE),
) -> list[TagResponse]:
    tags = await _get_story_service(request).list_trending_tags(limit)
    return [_tag_to_response(t) for t in tags]


@router.get("/locations/popular", response_model=list[LocationResponse])
async def popular_locations(
    request: Request,
    city: str | None = None,
    limit: int = Query(default=20, ge=1, le=_MAX_PAGE_SIZE),
) -> list[LocationResponse]:
    locations = await _get_story_service(request).list_popular_locations(city, limit)
    return [_location_to_response(loc) for loc in locations]


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and storage providers."""
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}) or {})
    return HealthResponse(status="healthy", version=_VERSION, providers=providers)
