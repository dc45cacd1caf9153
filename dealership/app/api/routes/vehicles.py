from __future__ import annotations

from dataclasses import asdict, replace
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from dealership.app.api.deps import get_record_store
from dealership.app.schemas import VehicleRead
from dealership.app.services.formatting import spec_sections
from dealership.app.services.inventory_filter import (
    apply_filters,
    derive_filter_options,
    reset_filter_spec,
)
from dealership.app.services.record_store import NotFoundError, RecordStore

STATUS_FILTERS = {"for_sale", "sold", "all"}

router = APIRouter()


@router.get("")
async def list_vehicles(
    status: str = "for_sale",
    search: str = "",
    make: str = "",
    min_price: Optional[int] = None,
    max_price: Optional[int] = None,
    min_year: Optional[int] = None,
    max_year: Optional[int] = None,
    fuel_type: str = "",
    transmission: str = "",
    sort_by: str = "created_at",
    sort_order: str = "desc",
    store: RecordStore = Depends(get_record_store),
):
    status = status.lower()
    if status not in STATUS_FILTERS:
        raise HTTPException(status_code=400, detail=f"Unsupported status '{status}'")

    records = store.list_vehicles(None if status == "all" else status)
    options = derive_filter_options(records)
    # unset range bounds default to the inventory's own bounds
    base = reset_filter_spec(options)
    try:
        spec = replace(
            base,
            search=search.strip(),
            make=make,
            min_price=base.min_price if min_price is None else min_price,
            max_price=base.max_price if max_price is None else max_price,
            min_year=base.min_year if min_year is None else min_year,
            max_year=base.max_year if max_year is None else max_year,
            fuel_type=fuel_type,
            transmission=transmission,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    rows = apply_filters(records, spec)
    empty_reason = None
    if not records:
        empty_reason = "no_inventory"
    elif not rows:
        empty_reason = "no_matches"

    return {
        "total": len(rows),
        "inventory_total": len(records),
        "rows": [VehicleRead.model_validate(record).model_dump(mode="json") for record in rows],
        "filter_options": asdict(options),
        "applied_filters": {"status": status, **asdict(spec)},
        "empty_reason": empty_reason,
    }


@router.get("/filter-options")
async def filter_options(store: RecordStore = Depends(get_record_store)):
    return store.filter_options()


@router.get("/{vehicle_id}")
async def get_vehicle(vehicle_id: str, store: RecordStore = Depends(get_record_store)):
    try:
        vehicle = store.get_vehicle(vehicle_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {
        "vehicle": VehicleRead.model_validate(vehicle).model_dump(mode="json"),
        "spec_sections": spec_sections(vehicle),
    }


@router.get("/{vehicle_id}/similar")
async def similar_vehicles(vehicle_id: str, limit: int = 4, store: RecordStore = Depends(get_record_store)):
    try:
        vehicle = store.get_vehicle(vehicle_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    similar = store.similar_vehicles(vehicle.id, vehicle.make, limit=max(1, min(limit, 12)))
    return [VehicleRead.model_validate(record).model_dump(mode="json") for record in similar]
