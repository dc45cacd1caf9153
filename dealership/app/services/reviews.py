"""Customer reviews for the dealership, read from the cache with a fallback chain.

Sources are tried strictly in order, each only after the previous one failed:

1. the cached summary and review rows in our own database,
2. the ``/reviews/cached`` endpoint,
3. the ``/reviews/live`` endpoint, which calls the Places API directly.

The Places API is rate limited and the most expensive, so it is only reached
when both cache reads are unavailable.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol, Sequence
from zoneinfo import ZoneInfo

from loguru import logger
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from dealership.app.core.settings import settings
from dealership.app.schemas import ReviewItem, ReviewsView
from dealership.app.services.http_client import AsyncTransport, JSONServiceClient, UpstreamError
from dealership.app.services.places_client import PlaceDetails, keep_review, review_url
from dealership.app.services.record_store import NotFoundError, RecordStore

REVIEW_LIMIT = 50
CACHED_RATINGS = frozenset({4, 5})
LIVE_RATINGS = frozenset({3, 4, 5})
DEFAULT_ERROR = "Kon reviews niet laden"
LIVE_NOTE = "(Live data - database tijdelijk onbeschikbaar)"

Clock = Callable[[], datetime]


class ReviewSourceError(UpstreamError):
    """Raised by a review source that cannot produce a result."""


class ReviewCacheMissError(ReviewSourceError):
    """Raised when no summary row has been synced for the place yet."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def cache_age_hours(updated_at: datetime, now: datetime) -> int:
    hours = (_ensure_utc(now) - _ensure_utc(updated_at)).total_seconds() / 3600
    return math.floor(hours + 0.5)


def format_update_time(updated_at: datetime, tz: Optional[str] = None) -> str:
    local = _ensure_utc(updated_at).astimezone(ZoneInfo(tz or settings.display_timezone))
    return local.strftime("%H:%M")


def cache_note(updated_at: datetime, age_hours: int, prefix: str = "Data bijgewerkt") -> str:
    if age_hours < 1:
        return ""
    return f"{prefix} {age_hours}u geleden om {format_update_time(updated_at)}"


def read_cached_reviews(
    store: RecordStore,
    place_id: str,
    *,
    note_prefix: str = "Data bijgewerkt",
    now: Optional[datetime] = None,
) -> ReviewsView:
    """Build the review block from the synced summary and review rows."""
    try:
        summary = store.get_review_summary(place_id)
        rows = store.list_reviews(place_id, limit=REVIEW_LIMIT, newest_first=True)
    except NotFoundError as exc:
        raise ReviewCacheMissError("No review data available in database") from exc
    except SQLAlchemyError as exc:
        raise ReviewSourceError(f"Review cache query failed: {exc}") from exc

    reviews = [
        ReviewItem(
            author_name=row.author_name,
            rating=row.rating,
            text=row.text or "",
            relative_time_description=row.relative_time_description,
            review_url=row.review_url,
        )
        for row in rows
    ]
    age = cache_age_hours(summary.updated_at, now or _utcnow())
    return ReviewsView(
        name=summary.place_name,
        rating=float(summary.average_rating),
        total_reviews=int(summary.total_reviews),
        reviews=reviews,
        filtered_count=len(reviews),
        total_review_count=len(reviews),
        note=cache_note(summary.updated_at, age, prefix=note_prefix),
        review_url=review_url(place_id),
        last_sync=summary.updated_at,
        cache_age_hours=age,
    )


def build_live_view(details: PlaceDetails) -> ReviewsView:
    """Review block straight from the Places API; 3-star reviews are kept here."""
    kept = [review for review in details.reviews if keep_review(review, LIVE_RATINGS)]
    logger.info(
        "Found {} total reviews, {} are 3-5 star with text", len(details.reviews), len(kept)
    )
    return ReviewsView(
        name=details.name,
        rating=details.rating,
        total_reviews=details.user_ratings_total,
        reviews=[ReviewItem.model_validate(review) for review in kept],
        filtered_count=len(kept),
        total_review_count=len(details.reviews),
    )


def review_stars(review: ReviewItem) -> int:
    return review.rating


class FunctionsClient(JSONServiceClient):
    """Calls the review endpoints, which may be deployed apart from the site."""

    error_class = ReviewSourceError
    service_name = "Review function"

    def __init__(self, base_url: Optional[str] = None, *, transport: Optional[AsyncTransport] = None, **kwargs: Any):
        super().__init__(base_url or settings.functions_base_url, transport=transport, **kwargs)

    async def invoke(self, path: str) -> ReviewsView:
        status, body = await self._request("GET", path, accept_error_status=True)
        if not isinstance(body, dict):
            raise ReviewSourceError(f"{path} returned an unexpected payload")
        if body.get("error") or status >= 400:
            raise ReviewSourceError(str(body.get("error") or f"{path} returned {status}"))
        try:
            return ReviewsView.model_validate(body)
        except ValidationError as exc:
            raise ReviewSourceError(f"{path} returned an invalid review payload") from exc


class ReviewProvider(Protocol):
    name: str

    async def fetch(self) -> ReviewsView: ...


class DatabaseReviewProvider:
    name = "database"

    def __init__(self, store: RecordStore, place_id: Optional[str] = None, clock: Clock = _utcnow):
        self.store = store
        self.place_id = place_id or settings.place_id
        self.clock = clock

    async def fetch(self) -> ReviewsView:
        return await asyncio.to_thread(read_cached_reviews, self.store, self.place_id, now=self.clock())


class CachedEndpointReviewProvider:
    name = "cached-endpoint"

    def __init__(self, client: FunctionsClient, path: str = "/reviews/cached"):
        self.client = client
        self.path = path

    async def fetch(self) -> ReviewsView:
        return await self.client.invoke(self.path)


class LiveEndpointReviewProvider:
    name = "live-endpoint"

    def __init__(self, client: FunctionsClient, path: str = "/reviews/live"):
        self.client = client
        self.path = path

    async def fetch(self) -> ReviewsView:
        view = await self.client.invoke(self.path)
        note = " ".join(part for part in (view.note, LIVE_NOTE) if part)
        return view.model_copy(update={"note": note})


@dataclass
class ReviewChainResult:
    data: Optional[ReviewsView] = None
    loading: bool = False
    error: Optional[str] = None
    using_fallback: bool = False
    source: Optional[str] = None


class ReviewFallbackChain:
    """Tries each provider in turn and returns the first answer.

    Never raises: when every provider fails the result carries the last error
    message and no data. There is no retry; the next page load starts over.
    """

    def __init__(self, providers: Sequence[ReviewProvider]):
        if not providers:
            raise ValueError("At least one review provider is required")
        self.providers = list(providers)

    async def fetch(self) -> ReviewChainResult:
        last_error: Optional[str] = None
        for index, provider in enumerate(self.providers):
            try:
                view = await provider.fetch()
            except ReviewSourceError as exc:
                last_error = str(exc) or DEFAULT_ERROR
                logger.warning("Review source {} failed: {}", provider.name, last_error)
                continue
            if index > 0:
                logger.info("Reviews served from fallback source {}", provider.name)
            return ReviewChainResult(data=view, using_fallback=index > 0, source=provider.name)

        logger.error("Error fetching reviews: {}", last_error)
        return ReviewChainResult(error=last_error or DEFAULT_ERROR, using_fallback=len(self.providers) > 1)


def build_review_chain(store: RecordStore, client: FunctionsClient, clock: Clock = _utcnow) -> ReviewFallbackChain:
    return ReviewFallbackChain(
        [
            DatabaseReviewProvider(store, clock=clock),
            CachedEndpointReviewProvider(client),
            LiveEndpointReviewProvider(client),
        ]
    )
