import logging
import math
import os
from typing import Optional

import httpx
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY")
GEOCODER_USER_AGENT = os.getenv("GEOCODER_USER_AGENT", "gps-time-clock/1.0")
GEOCODER_TIMEOUT = 10.0


class GeocodingError(Exception):
    """Every provider that was tried failed (as opposed to finding nothing)."""


def _result(lat, lng, formatted_address, provider) -> Optional[dict]:
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(lat) or not math.isfinite(lng):
        return None
    return {"lat": lat, "lng": lng, "formatted_address": formatted_address, "provider": provider}


async def _nominatim(client: httpx.AsyncClient, query: str) -> Optional[dict]:
    response = await client.get(
        NOMINATIM_URL,
        params={"format": "json", "limit": 1, "q": query},
        headers={"User-Agent": GEOCODER_USER_AGENT},
    )
    response.raise_for_status()
    data = response.json()
    if isinstance(data, list) and data:
        first = data[0]
        return _result(first.get("lat"), first.get("lon"), first.get("display_name"), "nominatim")
    return None


async def _google(client: httpx.AsyncClient, query: str) -> Optional[dict]:
    response = await client.get(GOOGLE_GEOCODE_URL, params={"address": query, "key": GOOGLE_MAPS_API_KEY})
    response.raise_for_status()
    data = response.json()
    if data.get("status") == "OK" and data.get("results"):
        first = data["results"][0]
        loc = first.get("geometry", {}).get("location", {})
        return _result(loc.get("lat"), loc.get("lng"), first.get("formatted_address"), "google")
    logger.warning("Google geocode returned %s: %s", data.get("status"), data.get("error_message"))
    return None


async def geocode_address(query: str) -> Optional[dict]:
    """
    Look up an address with Nominatim, falling back to Google when
    GOOGLE_MAPS_API_KEY is set. Returns None when nothing was found and raises
    GeocodingError when every provider tried failed outright.
    """
    providers = [_nominatim]
    if GOOGLE_MAPS_API_KEY:
        providers.append(_google)

    failures = 0
    async with httpx.AsyncClient(timeout=GEOCODER_TIMEOUT) as client:
        for provider in providers:
            try:
                found = await provider(client, query)
            except (httpx.HTTPError, ValueError) as e:
                failures += 1
                logger.warning("Geocoder %s failed for %r: %s", provider.__name__, query, e)
                continue
            if found:
                return found

    if failures == len(providers):
        raise GeocodingError("Geocoding service unavailable")
    return None
