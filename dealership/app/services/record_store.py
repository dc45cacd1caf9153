from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from dealership.app.core.logs import log_api_call, log_api_error
from dealership.app.db import models
from dealership.app.db.session import SessionLocal, session_scope

VEHICLE_FIELDS = (
    "make",
    "model",
    "trim",
    "vehicle_category",
    "color",
    "build_year",
    "odometer_km",
    "price",
    "description",
    "technical_notes",
    "options",
    "transmission",
    "fuel_type",
    "engine_cc",
    "cylinders",
    "power_hp",
    "weight_kg",
    "top_speed_kmh",
    "acceleration_0_100",
    "seats",
    "doors",
    "status",
    "available_soon",
    "reserved",
    "margin_scheme",
)


class NotFoundError(LookupError):
    """Raised when a requested row does not exist."""


class RecordStore:
    """Query surface over the vehicle, image and review tables.

    Every call opens its own unit of work from the injected session factory, so
    one store can be shared by request handlers and background jobs alike.
    Returned ORM objects are detached with their attributes (and images) loaded.
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self.session_factory = session_factory

    # vehicles

    def list_vehicles(self, status: Optional[str] = None) -> List[models.Vehicle]:
        path = f"/vehicles?status={status}" if status else "/vehicles"
        log_api_call("GET", path)
        stmt = select(models.Vehicle)
        if status:
            stmt = stmt.where(models.Vehicle.status == status)
        stmt = stmt.order_by(models.Vehicle.created_at.desc())
        try:
            with session_scope(self.session_factory) as session:
                return list(session.execute(stmt).scalars().all())
        except SQLAlchemyError as exc:
            log_api_error("GET", path, exc)
            raise

    def get_vehicle(self, vehicle_id: str) -> models.Vehicle:
        log_api_call("GET", f"/vehicles/{vehicle_id}")
        with session_scope(self.session_factory) as session:
            vehicle = session.get(models.Vehicle, vehicle_id)
            if vehicle is None:
                raise NotFoundError(f"Vehicle {vehicle_id} not found")
            return vehicle

    def insert_vehicle(self, fields: Mapping[str, Any]) -> models.Vehicle:
        log_api_call("POST", "/vehicles")
        with session_scope(self.session_factory) as session:
            vehicle = models.Vehicle(**_vehicle_columns(fields))
            session.add(vehicle)
            session.flush()
            session.refresh(vehicle)
            return vehicle

    def update_vehicle(self, vehicle_id: str, fields: Mapping[str, Any]) -> models.Vehicle:
        log_api_call("PUT", f"/vehicles/{vehicle_id}")
        with session_scope(self.session_factory) as session:
            vehicle = session.get(models.Vehicle, vehicle_id)
            if vehicle is None:
                raise NotFoundError(f"Vehicle {vehicle_id} not found")
            for field, value in _vehicle_columns(fields).items():
                setattr(vehicle, field, value)
            vehicle.updated_at = datetime.now(timezone.utc)
            session.flush()
            session.refresh(vehicle)
            return vehicle

    def delete_vehicle(self, vehicle_id: str) -> None:
        """Hard delete; image rows go with it through the ORM cascade."""
        log_api_call("DELETE", f"/vehicles/{vehicle_id}")
        with session_scope(self.session_factory) as session:
            vehicle = session.get(models.Vehicle, vehicle_id)
            if vehicle is None:
                raise NotFoundError(f"Vehicle {vehicle_id} not found")
            session.delete(vehicle)

    def similar_vehicles(self, vehicle_id: str, make: str, limit: int = 4) -> List[models.Vehicle]:
        log_api_call("GET", f"/vehicles/{vehicle_id}/similar", make=make, limit=limit)
        stmt = (
            select(models.Vehicle)
            .where(
                models.Vehicle.make == make,
                models.Vehicle.status == models.STATUS_FOR_SALE,
                models.Vehicle.id != vehicle_id,
            )
            .order_by(models.Vehicle.created_at.desc())
            .limit(limit)
        )
        with session_scope(self.session_factory) as session:
            return list(session.execute(stmt).scalars().all())

    def filter_options(self) -> Dict[str, List[str]]:
        """Distinct non-null values for the admin/catalogue dropdowns."""
        log_api_call("GET", "/vehicles/filter-options")
        columns = {
            "makes": models.Vehicle.make,
            "transmissions": models.Vehicle.transmission,
            "fuel_types": models.Vehicle.fuel_type,
            "vehicle_categories": models.Vehicle.vehicle_category,
        }
        options: Dict[str, List[str]] = {}
        with session_scope(self.session_factory) as session:
            for key, column in columns.items():
                rows = session.execute(select(column).where(column.is_not(None)).distinct()).scalars()
                options[key] = sorted(value for value in rows if value)
        return options

    # images

    def list_images(self, vehicle_id: str) -> List[models.VehicleImage]:
        stmt = (
            select(models.VehicleImage)
            .where(models.VehicleImage.vehicle_id == vehicle_id)
            .order_by(models.VehicleImage.display_order.asc())
        )
        with session_scope(self.session_factory) as session:
            return list(session.execute(stmt).scalars().all())

    def insert_image(
        self,
        vehicle_id: str,
        url: str,
        order: int,
        storage_path: Optional[str] = None,
    ) -> models.VehicleImage:
        log_api_call("POST", "/vehicle-images", vehicle_id=vehicle_id, order=order)
        with session_scope(self.session_factory) as session:
            image = models.VehicleImage(
                vehicle_id=vehicle_id,
                url=url,
                storage_path=storage_path,
                display_order=order,
            )
            session.add(image)
            session.flush()
            return image

    def update_image_order(self, image_id: str, order: int) -> None:
        with session_scope(self.session_factory) as session:
            image = session.get(models.VehicleImage, image_id)
            if image is None:
                raise NotFoundError(f"Image {image_id} not found")
            image.display_order = order

    def delete_image(self, image_id: str) -> None:
        log_api_call("DELETE", f"/vehicle-images/{image_id}")
        with session_scope(self.session_factory) as session:
            image = session.get(models.VehicleImage, image_id)
            if image is None:
                raise NotFoundError(f"Image {image_id} not found")
            session.delete(image)

    # reviews

    def get_review_summary(self, place_id: str) -> models.ReviewSummary:
        with session_scope(self.session_factory) as session:
            summary = session.get(models.ReviewSummary, place_id)
            if summary is None:
                raise NotFoundError(f"No review summary for place {place_id}")
            return summary

    def list_reviews(self, place_id: str, limit: int = 50, newest_first: bool = True) -> List[models.Review]:
        order = models.Review.original_time.desc() if newest_first else models.Review.original_time.asc()
        stmt = select(models.Review).where(models.Review.place_id == place_id).order_by(order).limit(limit)
        with session_scope(self.session_factory) as session:
            return list(session.execute(stmt).scalars().all())

    def count_reviews(self, place_id: str) -> int:
        stmt = select(func.count()).select_from(models.Review).where(models.Review.place_id == place_id)
        with session_scope(self.session_factory) as session:
            return session.execute(stmt).scalar_one()

    def last_successful_sync(self) -> Optional[models.ReviewSyncLog]:
        stmt = (
            select(models.ReviewSyncLog)
            .where(models.ReviewSyncLog.sync_status == "success")
            .order_by(models.ReviewSyncLog.created_at.desc())
            .limit(1)
        )
        with session_scope(self.session_factory) as session:
            return session.execute(stmt).scalar_one_or_none()


def _vehicle_columns(fields: Mapping[str, Any]) -> Dict[str, Any]:
    return {field: fields[field] for field in VEHICLE_FIELDS if field in fields}
