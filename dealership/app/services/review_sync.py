from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from dealership.app.core.settings import settings
from dealership.app.db import models
from dealership.app.db.session import SessionLocal, session_scope
from dealership.app.services.http_client import UpstreamError
from dealership.app.services.places_client import PlaceDetails, PlacesClient, keep_review, review_url
from dealership.app.services.record_store import NotFoundError, RecordStore
from dealership.app.services.reviews import CACHED_RATINGS, cache_age_hours

SYNC_PENDING = "pending"
SYNC_SUCCESS = "success"
SYNC_ERROR = "error"


class ReviewSyncError(Exception):
    """Raised when a sync run fails; the run is recorded in the sync log first."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _review_time(review: Dict[str, Any]) -> datetime:
    return datetime.fromtimestamp(int(review["time"]), tz=timezone.utc)


def persist_place_details(
    session: Session,
    place_id: str,
    details: PlaceDetails,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """Write the summary row and the 4-5 star reviews with text.

    Reviews are keyed by the provider's review time. Cached reviews the provider
    no longer returns are deleted, unless it returned none at all.
    """
    now = now or _utcnow()
    summary = session.get(models.ReviewSummary, place_id)
    if summary is None:
        summary = models.ReviewSummary(place_id=place_id)
        session.add(summary)
    summary.place_name = details.name
    summary.average_rating = details.rating
    summary.total_reviews = details.user_ratings_total
    summary.updated_at = now

    kept: Dict[str, Dict[str, Any]] = {}
    for review in details.reviews:
        if review.get("time") is None or not keep_review(review, CACHED_RATINGS):
            continue
        kept.setdefault(str(review["time"]), review)

    added = 0
    updated = 0
    for review_id, review in kept.items():
        row = session.execute(
            select(models.Review).where(
                models.Review.place_id == place_id,
                models.Review.review_id == review_id,
            )
        ).scalar_one_or_none()
        if row is None:
            row = models.Review(place_id=place_id, review_id=review_id, created_at=now)
            session.add(row)
            added += 1
        else:
            updated += 1
        row.author_name = review.get("author_name") or "Anoniem"
        row.rating = int(review["rating"])
        row.text = review.get("text") or None
        row.relative_time_description = review.get("relative_time_description")
        row.original_time = _review_time(review)
        row.review_url = review_url(place_id)
        row.profile_photo_url = review.get("profile_photo_url")
        row.updated_at = now

    deleted = 0
    if kept:
        result = session.execute(
            delete(models.Review).where(
                models.Review.place_id == place_id,
                models.Review.review_id.not_in(list(kept)),
            )
        )
        deleted = result.rowcount or 0

    return {
        "total_reviews_fetched": len(details.reviews),
        "new_reviews_added": added,
        "reviews_updated": updated,
        "reviews_deleted": deleted,
        "cached_reviews": len(kept),
    }


def _start_log(session_factory: sessionmaker, sync_type: str) -> int:
    with session_scope(session_factory) as session:
        entry = models.ReviewSyncLog(sync_type=sync_type, sync_status=SYNC_PENDING, created_at=_utcnow())
        session.add(entry)
        session.flush()
        return entry.id


def _finish_log(session_factory: sessionmaker, log_id: int, status: str, duration_ms: int, **fields: Any) -> None:
    with session_scope(session_factory) as session:
        entry = session.get(models.ReviewSyncLog, log_id)
        if entry is None:
            return
        entry.sync_status = status
        entry.sync_duration_ms = duration_ms
        entry.finished_at = _utcnow()
        for key, value in fields.items():
            setattr(entry, key, value)


async def sync_reviews(
    client: PlacesClient,
    place_id: Optional[str] = None,
    *,
    sync_type: str = "scheduled",
    session_factory: sessionmaker = SessionLocal,
) -> Dict[str, Any]:
    """Refresh the review cache from the Places API and log the run.

    Returns the run summary. Raises ``ReviewSyncError`` after recording an
    ``error`` row in the sync log.
    """
    place_id = place_id or settings.place_id
    started = time.monotonic()
    log_id = _start_log(session_factory, sync_type)
    logger.info("Review sync started ({}) for {}", sync_type, place_id)

    try:
        details = await client.fetch_place_details(place_id)
        with session_scope(session_factory) as session:
            counts = persist_place_details(session, place_id, details)
    except (UpstreamError, SQLAlchemyError) as exc:
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.error("Review sync failed after {}ms: {}", duration_ms, exc)
        _finish_log(session_factory, log_id, SYNC_ERROR, duration_ms, error_message=str(exc))
        raise ReviewSyncError(str(exc)) from exc

    duration_ms = int((time.monotonic() - started) * 1000)
    cached = counts.pop("cached_reviews")
    _finish_log(session_factory, log_id, SYNC_SUCCESS, duration_ms, **counts)
    logger.info(
        "Review sync finished in {}ms: {} fetched, {} new, {} updated, {} deleted",
        duration_ms,
        counts["total_reviews_fetched"],
        counts["new_reviews_added"],
        counts["reviews_updated"],
        counts["reviews_deleted"],
    )
    return {
        **counts,
        "duration_ms": duration_ms,
        "average_rating": details.rating,
        "total_place_reviews": details.user_ratings_total,
        "cached_reviews": cached,
    }


def cache_health(store: RecordStore, now: Optional[datetime] = None, max_age_hours: int = 48) -> Dict[str, Any]:
    """Freshness report for the review cache, with Dutch recommendations."""
    now = now or _utcnow()
    last_sync = store.last_successful_sync()
    try:
        summary = store.get_review_summary(settings.place_id)
    except NotFoundError:
        summary = None

    age: Optional[int] = None
    healthy = False
    if summary is not None:
        age = cache_age_hours(summary.updated_at, now)
        updated = summary.updated_at if summary.updated_at.tzinfo else summary.updated_at.replace(tzinfo=timezone.utc)
        healthy = (now - updated).total_seconds() < max_age_hours * 3600

    recommendations: List[str] = []
    if not healthy:
        recommendations.append("Cache is oud, overweeg handmatige sync")
    if last_sync is None:
        recommendations.append("Geen succesvolle syncs ooit vastgelegd")
    if summary is None:
        recommendations.append("Geen gecachte data beschikbaar")

    return {
        "healthy": healthy,
        "last_sync": last_sync.created_at if last_sync else None,
        "cache_age_hours": age,
        "reviews_in_cache": store.count_reviews(settings.place_id),
        "average_rating": summary.average_rating if summary else 0,
        "total_reviews": summary.total_reviews if summary else 0,
        "last_updated": summary.updated_at if summary else None,
        "recommendations": recommendations,
        "status": "Healthy" if healthy else "Attention needed",
    }
