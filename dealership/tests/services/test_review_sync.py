from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from dealership.app.core.settings import settings
from dealership.app.db import models
from dealership.app.db.session import session_scope
from dealership.app.services.places_client import PlaceDetails, PlacesError
from dealership.app.services.review_sync import (
    ReviewSyncError,
    cache_health,
    persist_place_details,
    sync_reviews,
)

PLACE = settings.place_id


class FakePlacesClient:
    def __init__(self, details=None, error=None):
        self.details = details
        self.error = error
        self.calls = []

    async def fetch_place_details(self, place_id):
        self.calls.append(place_id)
        if self.error:
            raise self.error
        return self.details


def review(time, rating=5, text="Heel tevreden", author="Klant"):
    return {"author_name": author, "rating": rating, "text": text, "time": time, "relative_time_description": "een week geleden"}


def details(*reviews):
    return PlaceDetails(name="Garage", rating=4.8, user_ratings_total=132, reviews=list(reviews))


def cached_ids():
    with session_scope() as session:
        return sorted(session.execute(select(models.Review.review_id)).scalars())


def sync_logs():
    with session_scope() as session:
        return session.execute(select(models.ReviewSyncLog).order_by(models.ReviewSyncLog.id)).scalars().all()


def test_persist_keeps_only_four_and_five_star_reviews_with_text():
    with session_scope() as session:
        counts = persist_place_details(
            session,
            PLACE,
            details(
                review(1700000001, rating=5),
                review(1700000002, rating=4),
                review(1700000003, rating=3),
                review(1700000004, rating=5, text=" "),
            ),
        )
    assert counts["new_reviews_added"] == 2
    assert cached_ids() == ["1700000001", "1700000002"]
    with session_scope() as session:
        row = session.execute(select(models.Review).where(models.Review.review_id == "1700000001")).scalar_one()
        summary = session.get(models.ReviewSummary, PLACE)
    assert row.original_time.replace(tzinfo=None) == datetime(2023, 11, 14, 22, 13, 21)
    assert row.review_url == f"https://search.google.com/local/reviews?placeid={PLACE}"
    assert (summary.average_rating, summary.total_reviews) == (4.8, 132)


def test_persist_updates_existing_and_deletes_stale_reviews():
    with session_scope() as session:
        persist_place_details(session, PLACE, details(review(1), review(2)))
    with session_scope() as session:
        counts = persist_place_details(session, PLACE, details(review(2, text="Nog steeds top"), review(3)))
    assert counts == {
        "total_reviews_fetched": 2,
        "new_reviews_added": 1,
        "reviews_updated": 1,
        "reviews_deleted": 1,
        "cached_reviews": 2,
    }
    assert cached_ids() == ["2", "3"]


def test_persist_keeps_cache_when_provider_returns_no_kept_reviews():
    with session_scope() as session:
        persist_place_details(session, PLACE, details(review(1)))
    with session_scope() as session:
        counts = persist_place_details(session, PLACE, details(review(9, rating=2)))
    assert counts["reviews_deleted"] == 0
    assert cached_ids() == ["1"]


@pytest.mark.asyncio
async def test_sync_logs_success():
    client = FakePlacesClient(details(review(10), review(11, rating=4)))
    summary = await sync_reviews(client, sync_type="manual")
    assert client.calls == [PLACE]
    assert summary["new_reviews_added"] == 2
    assert summary["cached_reviews"] == 2
    (log,) = sync_logs()
    assert log.sync_type == "manual"
    assert log.sync_status == "success"
    assert log.new_reviews_added == 2
    assert log.finished_at is not None


@pytest.mark.asyncio
async def test_sync_failure_is_logged_and_raised():
    client = FakePlacesClient(error=PlacesError("Places API error: REQUEST_DENIED"))
    with pytest.raises(ReviewSyncError, match="REQUEST_DENIED"):
        await sync_reviews(client)
    (log,) = sync_logs()
    assert log.sync_status == "error"
    assert "REQUEST_DENIED" in log.error_message


def test_health_reports_missing_cache(store):
    report = cache_health(store)
    assert report["healthy"] is False
    assert report["status"] == "Attention needed"
    assert "Geen gecachte data beschikbaar" in report["recommendations"]
    assert "Geen succesvolle syncs ooit vastgelegd" in report["recommendations"]


@pytest.mark.asyncio
async def test_health_is_green_after_recent_sync(store):
    await sync_reviews(FakePlacesClient(details(review(10))))
    report = cache_health(store)
    assert report["healthy"] is True
    assert report["reviews_in_cache"] == 1
    assert report["recommendations"] == []


def test_health_flags_stale_cache(store):
    now = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
    with session_scope() as session:
        session.add(
            models.ReviewSummary(
                place_id=PLACE,
                place_name="Garage",
                average_rating=4.5,
                total_reviews=10,
                updated_at=now - timedelta(hours=49),
            )
        )
    report = cache_health(store, now=now)
    assert report["healthy"] is False
    assert report["cache_age_hours"] == 49
    assert "Cache is oud, overweeg handmatige sync" in report["recommendations"]
