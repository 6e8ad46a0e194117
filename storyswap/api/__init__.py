"""StorySwap API layer: routes, schemas, identity headers and middleware."""

from storyswap.api.identity import (
    ActingUserDep,
    AdminUserDep,
    OptionalUserDep,
    get_acting_user,
    get_admin_user,
    get_optional_user,
)
from storyswap.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from storyswap.api.routes import router
from storyswap.api.schemas import (
    CreateStoryRequest,
    ErrorResponse,
    HealthResponse,
    RequestUnlockRequest,
    StoryDetailResponse,
    StoryResponse,
    SwapResponse,
    SwapStatsResponse,
    UnlockResponse,
)

__all__ = [
    "ActingUserDep",
    "AdminUserDep",
    "OptionalUserDep",
    "get_acting_user",
    "get_admin_user",
    "get_optional_user",
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "CreateStoryRequest",
    "ErrorResponse",
    "HealthResponse",
    "RequestUnlockRequest",
    "StoryDetailResponse",
    "StoryResponse",
    "SwapResponse",
    "SwapStatsResponse",
    "UnlockResponse",
]
