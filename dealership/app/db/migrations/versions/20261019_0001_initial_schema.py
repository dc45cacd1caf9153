"""Vehicles, photos, cached reviews and admin users.

Revision ID: 0001_initial
Revises: None
Create Date: 2026-10-19 09:00:00
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "vehicles",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("make", sa.Text(), nullable=False),
        sa.Column("model", sa.Text(), nullable=False),
        sa.Column("trim", sa.Text(), nullable=True),
        sa.Column("vehicle_category", sa.Text(), nullable=True),
        sa.Column("color", sa.Text(), nullable=True),
        sa.Column("build_year", sa.Integer(), nullable=False),
        sa.Column("odometer_km", sa.Integer(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("technical_notes", sa.Text(), nullable=True),
        sa.Column("options", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("transmission", sa.Text(), nullable=True),
        sa.Column("fuel_type", sa.Text(), nullable=True),
        sa.Column("engine_cc", sa.Integer(), nullable=True),
        sa.Column("cylinders", sa.Integer(), nullable=True),
        sa.Column("power_hp", sa.Integer(), nullable=True),
        sa.Column("weight_kg", sa.Integer(), nullable=True),
        sa.Column("top_speed_kmh", sa.Integer(), nullable=True),
        sa.Column("acceleration_0_100", sa.Float(), nullable=True),
        sa.Column("seats", sa.Integer(), nullable=True),
        sa.Column("doors", sa.Integer(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'for_sale'")),
        sa.Column("available_soon", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("reserved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("margin_scheme", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('for_sale', 'sold')", name="ck_vehicles_status"),
    )

    op.create_table(
        "vehicle_images",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "vehicle_id",
            sa.String(length=36),
            sa.ForeignKey("vehicles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("storage_path", sa.Text(), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    )

    op.create_table(
        "review_summaries",
        sa.Column("place_id", sa.Text(), primary_key=True),
        sa.Column("place_name", sa.Text(), nullable=False),
        sa.Column("average_rating", sa.Float(), nullable=False),
        sa.Column("total_reviews", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    op.create_table(
        "reviews",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("place_id", sa.Text(), nullable=False),
        sa.Column("review_id", sa.Text(), nullable=False),
        sa.Column("author_name", sa.Text(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=True),
        sa.Column("relative_time_description", sa.Text(), nullable=True),
        sa.Column("original_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("review_url", sa.Text(), nullable=True),
        sa.Column("profile_photo_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.UniqueConstraint("place_id", "review_id"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),
    )

    op.create_table(
        "review_sync_log",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("sync_type", sa.Text(), nullable=False),
        sa.Column("sync_status", sa.Text(), nullable=False),
        sa.Column("total_reviews_fetched", sa.Integer(), nullable=True),
        sa.Column("new_reviews_added", sa.Integer(), nullable=True),
        sa.Column("reviews_updated", sa.Integer(), nullable=True),
        sa.Column("reviews_deleted", sa.Integer(), nullable=True),
        sa.Column("sync_duration_ms", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.UniqueConstraint("email"),
    )

    op.create_index("idx_vehicles_status_created", "vehicles", ["status", "created_at"])
    op.create_index("idx_vehicle_images_vehicle_order", "vehicle_images", ["vehicle_id", "display_order"])
    op.create_index("idx_reviews_place_time", "reviews", ["place_id", "original_time"])
    op.create_index("idx_review_sync_log_status_created", "review_sync_log", ["sync_status", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_review_sync_log_status_created", table_name="review_sync_log")
    op.drop_index("idx_reviews_place_time", table_name="reviews")
    op.drop_index("idx_vehicle_images_vehicle_order", table_name="vehicle_images")
    op.drop_index("idx_vehicles_status_created", table_name="vehicles")
    op.drop_table("users")
    op.drop_table("review_sync_log")
    op.drop_table("reviews")
    op.drop_table("review_summaries")
    op.drop_table("vehicle_images")
    op.drop_table("vehicles")
