import io

import pandas as pd
import pytest

from dealership.app.services.inventory_import import ImportFileError, import_inventory

CSV = (
    "Merk,Model,Bouwjaar,Prijs,Kilometerstand,Brandstof,Opties\n"
    'Volkswagen,Golf,2019,"€ 17.950,-","85.000 km",Benzine,"Navigatie, Cruise control"\n'
    "Audi,,2018,15000,,,\n"
    "BMW,X3,2021,38500,42000,Diesel,\n"
    ",,,,,,\n"
    "Opel,Corsa,1700,5000,,,\n"
).encode("utf-8")


def test_import_csv_inserts_for_sale_vehicles(store):
    summary = import_inventory(store, "voorraad.csv", CSV)
    assert summary.rows_ingested == 2
    vehicles = {v.make: v for v in store.list_vehicles()}
    golf = vehicles["Volkswagen"]
    assert (golf.price, golf.odometer_km, golf.build_year) == (17950, 85000, 2019)
    assert golf.options == ["Navigatie", "Cruise control"]
    assert golf.status == "for_sale"
    assert vehicles["BMW"].fuel_type == "Diesel"


def test_row_errors_count_from_header(store):
    summary = import_inventory(store, "voorraad.csv", CSV)
    rows = {error["row"]: error["message"] for error in summary.row_errors}
    assert set(rows) == {3, 6}
    assert "model" in rows[3]
    assert "build_year" in rows[6]


def test_import_excel(store):
    buffer = io.BytesIO()
    pd.DataFrame([{"make": "Mazda", "model": "MX-5", "year": 2016, "price": 16950}]).to_excel(buffer, index=False)
    summary = import_inventory(store, "stock.xlsx", buffer.getvalue())
    assert summary.rows_ingested == 1
    assert store.list_vehicles()[0].model == "MX-5"


def test_empty_or_unreadable_file_is_rejected(store):
    with pytest.raises(ImportFileError):
        import_inventory(store, "voorraad.csv", b"")
    with pytest.raises(ImportFileError):
        import_inventory(store, "voorraad.xlsx", b"not a workbook")
