from __future__ import annotations

import io
import math
import re
import zipfile
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd
from loguru import logger
from pydantic import ValidationError

from dealership.app.schemas import VehicleForm
from dealership.app.services.record_store import RecordStore

# header (lowercased) -> vehicle field; exports come with Dutch or English headers
COLUMN_ALIASES: Dict[str, str] = {
    "merk": "make",
    "make": "make",
    "model": "model",
    "type": "trim",
    "uitvoering": "trim",
    "trim": "trim",
    "bouwjaar": "build_year",
    "jaar": "build_year",
    "year": "build_year",
    "build_year": "build_year",
    "prijs": "price",
    "price": "price",
    "kilometerstand": "odometer_km",
    "km": "odometer_km",
    "mileage": "odometer_km",
    "odometer_km": "odometer_km",
    "brandstof": "fuel_type",
    "fuel_type": "fuel_type",
    "transmissie": "transmission",
    "transmission": "transmission",
    "kleur": "color",
    "color": "color",
    "carrosserie": "vehicle_category",
    "voertuigtype": "vehicle_category",
    "vehicle_category": "vehicle_category",
    "omschrijving": "description",
    "description": "description",
    "opties": "options",
    "options": "options",
    "motorinhoud": "engine_cc",
    "engine_cc": "engine_cc",
    "vermogen": "power_hp",
    "power_hp": "power_hp",
    "deuren": "doors",
    "doors": "doors",
    "zitplaatsen": "seats",
    "seats": "seats",
}

INTEGER_FIELDS = {"build_year", "price", "odometer_km", "engine_cc", "power_hp", "doors", "seats"}
REQUIRED_FIELDS = ("make", "model", "build_year", "price")


class ImportFileError(ValueError):
    """Raised when the uploaded file cannot be read as a spreadsheet."""


@dataclass
class ImportSummary:
    filename: str
    rows_ingested: int = 0
    vehicle_ids: List[str] = field(default_factory=list)
    row_errors: List[Dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "rows_ingested": self.rows_ingested,
            "vehicle_ids": self.vehicle_ids,
            "row_errors": self.row_errors,
            "status": "completed",
        }


def import_inventory(store: RecordStore, filename: str, content: bytes) -> ImportSummary:
    """Insert every usable row of a stock export as a for-sale vehicle.

    Row numbers in ``row_errors`` count the header as row 1.
    """
    if not content:
        raise ImportFileError("Uploaded file is empty")
    dataframe = load_spreadsheet(filename, content)
    summary = ImportSummary(filename=filename)

    # the frame index survives dropna, so blank lines still count
    for index, record in zip(dataframe.index, dataframe.to_dict(orient="records")):
        row_number = int(index) + 2
        fields = _map_row(record)
        missing = [name for name in REQUIRED_FIELDS if fields.get(name) in (None, "")]
        if missing:
            summary.row_errors.append({"row": row_number, "message": f"Missing {', '.join(missing)}"})
            continue
        try:
            form = VehicleForm.model_validate({**fields, "status": "for_sale"})
        except ValidationError as exc:
            summary.row_errors.append({"row": row_number, "message": _first_error(exc)})
            continue
        vehicle = store.insert_vehicle(form.model_dump())
        summary.vehicle_ids.append(vehicle.id)

    summary.rows_ingested = len(summary.vehicle_ids)
    logger.info(
        "Imported {} vehicles from {} ({} row errors)", summary.rows_ingested, filename, len(summary.row_errors)
    )
    return summary


def load_spreadsheet(filename: str, content: bytes) -> pd.DataFrame:
    buffer = io.BytesIO(content)
    try:
        if filename.lower().endswith(".csv"):
            df = pd.read_csv(buffer)
        else:
            df = pd.read_excel(buffer)
    except (ValueError, OSError, zipfile.BadZipFile, pd.errors.ParserError) as exc:
        raise ImportFileError(f"Unable to read spreadsheet: {exc}") from exc

    df.columns = [str(col).strip() for col in df.columns]
    return df.dropna(how="all")


def _map_row(record: Dict[str, Any]) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for column, value in record.items():
        target = COLUMN_ALIASES.get(str(column).strip().lower())
        if target is None or target in fields or _is_null(value):
            continue
        if target in INTEGER_FIELDS:
            fields[target] = _parse_int(value)
        elif target == "options":
            fields[target] = [item.strip() for item in str(value).split(",") if item.strip()]
        else:
            fields[target] = _clean_text(value)
    return fields


def _clean_text(value: Any) -> Optional[str]:
    if isinstance(value, (pd.Timestamp, datetime)):
        return value.date().isoformat()
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _parse_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) else int(round(value))
    # "€ 15.000,-" and "120.000 km" style cells
    text = re.sub(r",-?$", "", str(value).strip())
    digits = re.sub(r"[^\d]", "", text)
    return int(digits) if digits else None


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ())) or "row"
    return f"{location}: {error.get('msg')}"


def _is_null(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False
