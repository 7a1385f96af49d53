"""Pydantic schemas for API request/response validation.

Defines the data models used for serialization and validation of all
API endpoint inputs and outputs.
"""

from typing import Literal

from pydantic import BaseModel, Field

InteractionType = Literal["like", "dislike", "collection", "share", "comment", "view"]


class RecommendationItem(BaseModel):
    """A single recommended meme with its scores.

    Attributes:
        id: The meme identifier.
        total_score: Weighted sum of the component scores.
        component_scores: Raw score per contributing algorithm.
        recommendation_type: Algorithm contributing the most to the score.
        title: Meme title.
        author_id: Author of the meme.
        tags: Meme tags.
        hot_score: Stored hot score.
        hot_level: Bucket name for the hot score.
        created_at: Unix creation time.
    """

    id: str
    total_score: float
    component_scores: dict[str, float]
    recommendation_type: str
    title: str | None = None
    author_id: str | None = None
    tags: list[str] = Field(default_factory=list)
    hot_score: float = 0.0
    hot_level: str = "new"
    created_at: float | None = None


class Pagination(BaseModel):
    """Pagination metadata; ``hasMore`` is true iff ``page < totalPages``."""

    page: int
    limit: int
    total: int
    totalPages: int
    hasMore: bool


class RecommendationMetadata(BaseModel):
    algorithm: str
    cached: bool
    weights: dict[str, float]
    failed_algorithms: list[str] = Field(default_factory=list)
    cold_start: bool | None = None
    activity_level: str | None = None
    applied_tags: list[str] = Field(default_factory=list)
    generated_at: float


class RecommendationsData(BaseModel):
    recommendations: list[RecommendationItem]
    pagination: Pagination
    metadata: RecommendationMetadata


class RecommendationsResponse(BaseModel):
    """Envelope for ``GET /api/recommendations``."""

    success: bool = True
    data: RecommendationsData


class InteractionRequest(BaseModel):
    """Request schema for recording a user interaction.

    Attributes:
        user_id: The acting user.
        meme_id: The meme interacted with.
        type: Interaction type.
        content: Comment text, only meaningful for comments.
    """

    user_id: str = Field(min_length=1)
    meme_id: str = Field(min_length=1)
    type: InteractionType
    content: str | None = None


class InteractionResponse(BaseModel):
    """Response schema for interaction submission.

    Attributes:
        success: Whether the interaction was saved.
        created: False when the same interaction already existed.
        hot_score: The meme's recomputed hot score.
        invalidated_keys: Cache entries removed as a result.
        notification_job_id: Id of the enqueued notification job, if any.
    """

    success: bool
    created: bool
    hot_score: float
    invalidated_keys: int
    notification_job_id: str | None = None


class FollowRequest(BaseModel):
    follower_id: str = Field(min_length=1)
    followed_id: str = Field(min_length=1)


class FollowResponse(BaseModel):
    """Response schema for follow submission.

    Attributes:
        success: Whether the edge is stored.
        created: False when the edge already existed.
        invalidated_keys: Cache entries removed as a result.
        notification_job_id: Id of the enqueued notification job, if any.
    """

    success: bool
    created: bool
    invalidated_keys: int
    notification_job_id: str | None = None


class CacheClearResponse(BaseModel):
    success: bool
    total_deleted: int
    per_pattern: dict[str, int]
    failed: list[str]


class HealthResponse(BaseModel):
    """Response schema for health check endpoint.

    Attributes:
        status: "healthy", or "degraded" when a backend is unreachable.
        cache_connected: Whether the cache Redis answers.
        cache_keys: Number of keys in the cache database.
        queue_connected: Whether the queue Redis answers.
        queue: Job counts per state, when available.
    """

    status: str
    cache_connected: bool
    cache_keys: int = 0
    queue_connected: bool
    queue: dict[str, int] | None = None
