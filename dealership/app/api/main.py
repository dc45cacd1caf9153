from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from dealership.app.core.logs import configure_logging
from dealership.app.core.settings import settings
from .routes import admin, auth, contact, reviews, vehicles

configure_logging()

app = FastAPI(title="Dealership API", version="0.1.0")

app.include_router(vehicles.router, prefix="/vehicles", tags=["vehicles"])
app.include_router(reviews.router, prefix="/reviews", tags=["reviews"])
app.include_router(contact.router, prefix="/contact", tags=["contact"])
app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])

if settings.object_store_backend.lower() == "local":
    app.mount(
        "/media/car-images",
        StaticFiles(directory=Path(settings.object_store_root), check_dir=False),
        name="car-images",
    )


@app.get("/health")
async def health():
    return {"status": "ok"}
