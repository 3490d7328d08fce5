# ordering/services/geocoding.py
import logging

import httpx
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

DEFAULT_URL = "https://nominatim.openstreetmap.org/reverse"


def fallback_address(lat: float, lng: float) -> str:
    return f"Location: {lat:.6f}, {lng:.6f}"


def _setting(name, default):
    if has_app_context():
        return current_app.config.get(name, default)
    return default


def reverse_geocode(lat: float, lng: float, client: httpx.Client | None = None) -> str:
    """
    Coordinates -> human readable address. Advisory only: any failure
    (disabled, timeout, HTTP error, bad payload) returns the placeholder.
    """
    if not _setting("GEOCODER_ENABLED", True):
        return fallback_address(lat, lng)

    url = _setting("GEOCODER_URL", DEFAULT_URL)
    params = {"format": "json", "lat": lat, "lon": lng, "addressdetails": 1}
    headers = {"User-Agent": _setting("GEOCODER_USER_AGENT", "ordering-api/1.0")}
    timeout = float(_setting("GEOCODER_TIMEOUT", 3.0))

    try:
        if client is None:
            with httpx.Client(timeout=timeout) as c:
                resp = c.get(url, params=params, headers=headers)
        else:
            resp = client.get(url, params=params, headers=headers, timeout=timeout)
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("reverse geocode failed for %.6f,%.6f: %s", lat, lng, e)
        return fallback_address(lat, lng)

    name = data.get("display_name") if isinstance(data, dict) else None
    if not name:
        return fallback_address(lat, lng)
    return name
