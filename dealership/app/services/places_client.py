from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from dealership.app.core.rate_limit import TokenBucket
from dealership.app.core.settings import settings
from dealership.app.services.http_client import AsyncTransport, JSONServiceClient, UpstreamError

DETAILS_PATH = "/maps/api/place/details/json"
DETAILS_FIELDS = "name,rating,user_ratings_total,reviews"


class PlacesError(UpstreamError):
    """Raised when the Places API cannot return place details."""


class PlacesNotConfiguredError(PlacesError):
    """Raised when no Places API key is configured."""


@dataclass
class PlaceDetails:
    name: str
    rating: float
    user_ratings_total: int
    reviews: List[Dict[str, Any]] = field(default_factory=list)


def review_url(place_id: str) -> str:
    return f"https://search.google.com/local/reviews?placeid={place_id}"


def keep_review(review: Dict[str, Any], ratings: frozenset[int]) -> bool:
    text = review.get("text") or ""
    return review.get("rating") in ratings and bool(text.strip())


class PlacesClient(JSONServiceClient):
    """Place Details lookups (name, rating, review sample) for the dealership."""

    error_class = PlacesError
    service_name = "Places API"

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: str = "https://maps.googleapis.com",
        bucket: Optional[TokenBucket] = None,
        transport: Optional[AsyncTransport] = None,
        **kwargs: Any,
    ):
        super().__init__(base_url, transport=transport, **kwargs)
        self.api_key = api_key if api_key is not None else settings.google_places_api_key
        self.bucket = bucket or TokenBucket(settings.places_rpm_limit)

    async def fetch_place_details(self, place_id: str) -> PlaceDetails:
        if not self.api_key:
            raise PlacesNotConfiguredError("Google Places API key niet geconfigureerd")
        await self.bucket.acquire()
        params = {
            "place_id": place_id,
            "fields": DETAILS_FIELDS,
            "key": self.api_key,
            "language": "nl",
            "reviews_no_translations": "true",
            "reviews_sort": "newest",
        }
        _, body = await self._request("GET", DETAILS_PATH, params=params)
        status = body.get("status") if isinstance(body, dict) else None
        if status != "OK":
            raise PlacesError(f"Places API error: {status}")
        result = body.get("result") or {}
        reviews = [r for r in result.get("reviews") or [] if isinstance(r, dict)]
        reviews.sort(key=lambda r: r.get("time") or 0, reverse=True)
        logger.debug("Places API returned {} reviews for {}", len(reviews), place_id)
        return PlaceDetails(
            name=result.get("name") or "",
            rating=float(result.get("rating") or 0),
            user_ratings_total=int(result.get("user_ratings_total") or 0),
            reviews=reviews,
        )
