#!/usr/bin/env python3
"""Refresh the cached Google reviews for the dealership.

Usage:
  python scripts/sync_reviews.py
  python scripts/sync_reviews.py --place-id <place id> --manual

Meant to run from cron; exits non-zero when the sync fails so the scheduler
can alert.
"""
import argparse, asyncio, json, sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dealership.app.core.logs import configure_logging
from dealership.app.services.places_client import PlacesClient
from dealership.app.services.review_sync import ReviewSyncError, sync_reviews


async def run(place_id, sync_type):
    client = PlacesClient()
    try:
        return await sync_reviews(client, place_id, sync_type=sync_type)
    finally:
        await client.aclose()


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--place-id", type=str, default=None, help="Defaults to PLACE_ID")
    ap.add_argument("--manual", action="store_true", help="Log the run as manual instead of scheduled")
    args = ap.parse_args()

    configure_logging()
    try:
        summary = asyncio.run(run(args.place_id, "manual" if args.manual else "scheduled"))
    except ReviewSyncError as exc:
        print(f"Sync failed: {exc}")
        sys.exit(1)
    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
