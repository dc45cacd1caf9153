from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, computed_field, field_validator, model_validator

from dealership.app.services import formatting

VehicleStatus = Literal["for_sale", "sold"]


def _camel(value: str) -> str:
    components = value.split("_")
    if not components:
        return value
    return components[0] + "".join(c.title() for c in components[1:])


class VehicleForm(BaseModel):
    """Admin edit form for a vehicle; every write goes through this model."""

    make: str = Field(min_length=1)
    model: str = Field(min_length=1)
    trim: Optional[str] = None
    vehicle_category: Optional[str] = None
    color: Optional[str] = None
    build_year: int = Field(ge=1886, le=2100)
    odometer_km: Optional[int] = Field(default=None, ge=0)
    price: int = Field(ge=0)
    description: Optional[str] = None
    technical_notes: Optional[str] = None
    options: Optional[List[str]] = None
    transmission: Optional[str] = None
    fuel_type: Optional[str] = None
    engine_cc: Optional[int] = Field(default=None, ge=0)
    cylinders: Optional[int] = Field(default=None, ge=0)
    power_hp: Optional[int] = Field(default=None, ge=0)
    weight_kg: Optional[int] = Field(default=None, ge=0)
    top_speed_kmh: Optional[int] = Field(default=None, ge=0)
    acceleration_0_100: Optional[float] = Field(default=None, ge=0)
    seats: Optional[int] = Field(default=None, ge=0)
    doors: Optional[int] = Field(default=None, ge=0)
    status: VehicleStatus = "for_sale"
    available_soon: bool = False
    reserved: bool = False
    margin_scheme: bool = False

    @field_validator("make", "model", mode="before")
    @classmethod
    def _strip_required(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("options")
    @classmethod
    def _drop_empty_options(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        cleaned = [item.strip() for item in value if item and item.strip()]
        return cleaned or None

    @model_validator(mode="after")
    def _status_flags(self) -> "VehicleForm":
        if self.status == "sold":
            self.available_soon = False
            self.reserved = False
        elif self.available_soon and self.reserved:
            raise ValueError("available_soon and reserved cannot both be set")
        return self


class VehicleImageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    url: str
    display_order: int


class VehicleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    make: str
    model: str
    trim: Optional[str] = None
    vehicle_category: Optional[str] = None
    color: Optional[str] = None
    build_year: int
    odometer_km: Optional[int] = None
    price: int
    description: Optional[str] = None
    technical_notes: Optional[str] = None
    options: Optional[List[str]] = None
    transmission: Optional[str] = None
    fuel_type: Optional[str] = None
    engine_cc: Optional[int] = None
    cylinders: Optional[int] = None
    power_hp: Optional[int] = None
    weight_kg: Optional[int] = None
    top_speed_kmh: Optional[int] = None
    acceleration_0_100: Optional[float] = None
    seats: Optional[int] = None
    doors: Optional[int] = None
    status: VehicleStatus = "for_sale"
    available_soon: bool = False
    reserved: bool = False
    margin_scheme: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    images: List[VehicleImageRead] = Field(default_factory=list)


class ReviewItem(BaseModel):
    author_name: str
    rating: int
    text: str = ""
    relative_time_description: Optional[str] = None
    review_url: Optional[str] = None


class ReviewsView(BaseModel):
    """Review block shown on the site; the JSON shape of the review endpoints."""

    model_config = ConfigDict(alias_generator=_camel, populate_by_name=True)

    name: str
    rating: float
    total_reviews: int
    reviews: List[ReviewItem] = Field(default_factory=list)
    filtered_count: Optional[int] = None
    total_review_count: Optional[int] = None
    note: str = ""
    review_url: Optional[str] = None
    last_sync: Optional[datetime] = None
    cache_age_hours: Optional[int] = None

    @computed_field(alias="filledStars")
    @property
    def filled_stars(self) -> int:
        """Stars to fill next to the aggregate rating."""
        return formatting.filled_stars(self.rating)


class DriveRequest(BaseModel):
    """Test drive request posted from a vehicle detail page."""

    model_config = ConfigDict(alias_generator=_camel, populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(min_length=1, max_length=20)
    car_brand: str = Field(min_length=1)
    car_model: str = Field(min_length=1)


class ContactMessage(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=20)
    message: str = Field(min_length=1, max_length=5000)


class FeedbackRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    feedback: str = ""
    timestamp: datetime

    @model_validator(mode="after")
    def _feedback_required_below_five(self) -> "FeedbackRequest":
        if self.rating < 5 and not self.feedback.strip():
            raise ValueError("feedback is required for ratings below 5")
        return self


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    full_name: Optional[str] = None
    is_admin: bool
    is_active: bool
