import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, BigInteger, String, Float, Boolean, Text, DateTime, ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.dialects.postgresql import JSONB

Base = declarative_base()

JSONType = JSON().with_variant(JSONB(), "postgresql")

STATUS_FOR_SALE = "for_sale"
STATUS_SOLD = "sold"
VEHICLE_STATUSES = (STATUS_FOR_SALE, STATUS_SOLD)


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Vehicle(Base):
    __tablename__ = "vehicles"
    id = Column(String(36), primary_key=True, default=_uuid)
    make = Column(Text, nullable=False)
    model = Column(Text, nullable=False)
    trim = Column(Text)
    vehicle_category = Column(Text)
    color = Column(Text)
    build_year = Column(Integer, nullable=False)
    odometer_km = Column(Integer)
    price = Column(Integer, nullable=False)
    description = Column(Text)
    technical_notes = Column(Text)
    options = Column(JSONType)
    transmission = Column(Text)
    fuel_type = Column(Text)
    engine_cc = Column(Integer)
    cylinders = Column(Integer)
    power_hp = Column(Integer)
    weight_kg = Column(Integer)
    top_speed_kmh = Column(Integer)
    acceleration_0_100 = Column(Float)
    seats = Column(Integer)
    doors = Column(Integer)
    status = Column(Text, nullable=False, default=STATUS_FOR_SALE)  # for_sale|sold
    available_soon = Column(Boolean, nullable=False, default=False)
    reserved = Column(Boolean, nullable=False, default=False)
    margin_scheme = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True))

    images = relationship(
        "VehicleImage",
        back_populates="vehicle",
        order_by="VehicleImage.display_order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

class VehicleImage(Base):
    __tablename__ = "vehicle_images"
    id = Column(String(36), primary_key=True, default=_uuid)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(Text, nullable=False)
    storage_path = Column(Text)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    vehicle = relationship("Vehicle", back_populates="images")

class ReviewSummary(Base):
    __tablename__ = "review_summaries"
    place_id = Column(Text, primary_key=True)
    place_name = Column(Text, nullable=False)
    average_rating = Column(Float, nullable=False)
    total_reviews = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

class Review(Base):
    __tablename__ = "reviews"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    place_id = Column(Text, nullable=False)
    review_id = Column(Text, nullable=False)  # provider-assigned, the review's unix time
    author_name = Column(Text, nullable=False)
    rating = Column(Integer, nullable=False)
    text = Column(Text)
    relative_time_description = Column(Text)
    original_time = Column(DateTime(timezone=True), nullable=False)
    review_url = Column(Text)
    profile_photo_url = Column(Text)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)
    __table_args__ = (UniqueConstraint("place_id", "review_id"),)

class ReviewSyncLog(Base):
    __tablename__ = "review_sync_log"
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    sync_type = Column(Text, nullable=False)  # scheduled|manual
    sync_status = Column(Text, nullable=False)  # pending|success|error
    total_reviews_fetched = Column(Integer)
    new_reviews_added = Column(Integer)
    reviews_updated = Column(Integer)
    reviews_deleted = Column(Integer)
    sync_duration_ms = Column(Integer)
    error_message = Column(Text)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    finished_at = Column(DateTime(timezone=True))

class User(Base):
    __tablename__ = "users"
    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255))
    is_admin = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
