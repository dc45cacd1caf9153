from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from dealership.app.api.deps import get_functions_client, get_places_client, get_record_store
from dealership.app.core.settings import settings
from dealership.app.services.places_client import PlacesClient, PlacesError, PlacesNotConfiguredError, review_url
from dealership.app.services.record_store import RecordStore
from dealership.app.services.review_sync import cache_health
from dealership.app.services.reviews import (
    FunctionsClient,
    ReviewCacheMissError,
    ReviewSourceError,
    build_live_view,
    build_review_chain,
    read_cached_reviews,
)

router = APIRouter()


@router.get("")
async def reviews(
    store: RecordStore = Depends(get_record_store),
    client: FunctionsClient = Depends(get_functions_client),
):
    result = await build_review_chain(store, client).fetch()
    return {
        "data": result.data.model_dump(by_alias=True, mode="json") if result.data else None,
        "loading": result.loading,
        "error": result.error,
        "usingFallback": result.using_fallback,
        "source": result.source,
    }


@router.get("/cached")
async def cached_reviews(store: RecordStore = Depends(get_record_store)):
    try:
        view = read_cached_reviews(store, settings.place_id, note_prefix="Data cached")
    except ReviewCacheMissError as exc:
        logger.warning("Cached reviews requested before first sync")
        return JSONResponse(status_code=404, content={"error": str(exc), "fallbackRequired": True})
    except ReviewSourceError as exc:
        logger.error("Error in cached reviews endpoint: {}", exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})
    return view.model_dump(by_alias=True, mode="json")


@router.get("/live")
async def live_reviews(client: PlacesClient = Depends(get_places_client)):
    try:
        details = await client.fetch_place_details(settings.place_id)
    except PlacesNotConfiguredError as exc:
        return JSONResponse(status_code=400, content={"error": str(exc)})
    except PlacesError as exc:
        logger.error("Error fetching live reviews: {}", exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})
    view = build_live_view(details).model_copy(update={"review_url": review_url(settings.place_id)})
    return view.model_dump(by_alias=True, mode="json")


@router.get("/health")
async def reviews_health(store: RecordStore = Depends(get_record_store)):
    try:
        report = cache_health(store)
    except SQLAlchemyError as exc:
        logger.error("Review health check failed: {}", exc)
        return JSONResponse(status_code=500, content={"healthy": False, "error": str(exc), "status": "Error"})
    return jsonable_encoder(report)
