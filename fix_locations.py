"""Backfill complaint coordinates that were stored as [0, 0].

Each complaint without a usable location has its address geocoded through
OpenStreetMap Nominatim, at most one request per second. Results outside
India are discarded.

    python fix_locations.py          # geocode and save
    python fix_locations.py --check  # report only
"""

import argparse
import logging
import sys
import time

import requests
from sqlalchemy.orm.attributes import flag_modified

import models
from database import SessionLocal
from services.workflow import is_location_set

logger = logging.getLogger("cleanstreet.locations")

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
USER_AGENT = "CleanStreet location backfill"
REQUEST_INTERVAL_SECONDS = 1.0

INDIA_LAT = (6.4626999, 35.513327)
INDIA_LON = (68.1097, 97.39535)


def in_india(lat: float, lon: float) -> bool:
    return INDIA_LAT[0] <= lat <= INDIA_LAT[1] and INDIA_LON[0] <= lon <= INDIA_LON[1]


def geocode(address: str, session=None):
    """Return a GeoJSON point for the address, or None."""
    http = session or requests
    try:
        response = http.get(
            NOMINATIM_URL,
            params={"format": "json", "q": address, "countrycodes": "in", "limit": 1},
            headers={"User-Agent": USER_AGENT},
            timeout=10,
        )
        response.raise_for_status()
        results = response.json()
        if not results:
            return None
        lat = float(results[0]["lat"])
        lon = float(results[0]["lon"])
    except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as exc:
        logger.warning("Geocoding failed for %r: %s", address, exc)
        return None

    if not in_india(lat, lon):
        logger.info("Discarding %r: [%s, %s] is outside India", address, lon, lat)
        return None
    return {"type": "Point", "coordinates": [lon, lat]}


def fix_locations(db, check_only=False, session=None, pause=time.sleep):
    """Returns a dict with fixed, skipped and failed counts."""
    summary = {"fixed": 0, "skipped": 0, "failed": 0}
    for complaint in db.query(models.Complaint).order_by(models.Complaint.id).all():
        if is_location_set(complaint.location_coords):
            summary["skipped"] += 1
            continue

        address = (complaint.address or "").strip()
        if not address:
            logger.warning("Complaint %s has no address to geocode", complaint.id)
            summary["failed"] += 1
            continue

        if check_only:
            logger.info("Complaint %s %r needs a location", complaint.id, complaint.title)
            summary["failed"] += 1
            continue

        pause(REQUEST_INTERVAL_SECONDS)
        point = geocode(address, session)
        if point is None:
            summary["failed"] += 1
            continue

        complaint.location_coords = point
        flag_modified(complaint, "location_coords")
        db.commit()
        logger.info("Complaint %s located at %s", complaint.id, point["coordinates"])
        summary["fixed"] += 1

    return summary


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--check",
        action="store_true",
        help="only report complaints without a usable location",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    db = SessionLocal()
    try:
        with requests.Session() as session:
            summary = fix_locations(db, check_only=args.check, session=session)
    finally:
        db.close()

    print(
        f"Fixed: {summary['fixed']}  Skipped: {summary['skipped']}  "
        f"Failed: {summary['failed']}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
