"""Reverse geocoding for naming a home base (lat/lon -> city name).

Uses OpenStreetMap Nominatim through the standard library. The public service
is rate-limited: keep ``min_interval_seconds`` at 1s or more and send a
descriptive User-Agent.
"""

from __future__ import annotations

import json
import logging
import time
import urllib.parse
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from prayer_reminder.models import Coordinates, HomeBase

logger = logging.getLogger(__name__)

# Address fields tried in order when naming a place.
PLACE_FIELDS: Final[tuple[str, ...]] = ("city", "town", "village", "municipality", "county", "state")


@dataclass(frozen=True, slots=True)
class PlaceName:
    """What a reverse lookup yields for naming a location."""

    name: str
    country_code: str | None
    display_name: str = ""


def coord_key(lat: float, lon: float, precision: int) -> str:
    """Cache key from coordinates rounded to ``precision`` decimals.

    Precision 2 (~1 km) is plenty for a city name.
    """

    return f"{round(lat, precision):.{precision}f},{round(lon, precision):.{precision}f}"


def fallback_name(coordinates: Coordinates) -> str:
    return f"{coordinates.latitude:.4f}, {coordinates.longitude:.4f}"


def place_from_raw(raw: dict[str, Any]) -> PlaceName | None:
    """Pick a short place name out of a Nominatim ``jsonv2`` response."""

    address = raw.get("address") or {}
    if not isinstance(address, dict):
        return None
    name = next((str(address[f]) for f in PLACE_FIELDS if address.get(f)), "")
    if not name:
        name = str(raw.get("name") or "")
    if not name:
        return None
    cc = address.get("country_code")
    return PlaceName(
        name=name,
        country_code=str(cc).upper() if cc else None,
        display_name=str(raw.get("display_name", "") or ""),
    )


class JsonDiskCache:
    """Lookup cache persisted as one JSON object (key -> place dict)."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._data: dict[str, dict[str, Any]] = {}
        self._loaded = False

    def load(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        if not self._path.exists():
            return
        text = self._path.read_text(encoding="utf-8").strip()
        if not text:
            return
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            # Corrupted: keep a backup and start fresh
            backup = self._path.with_suffix(self._path.suffix + ".broken")
            backup.write_text(text, encoding="utf-8")
            logger.warning("Geocode cache %s corrupted, moved to %s", self._path, backup)
            return
        if isinstance(data, dict):
            self._data = data

    def get(self, key: str) -> dict[str, Any] | None:
        self.load()
        return self._data.get(key)

    def set(self, key: str, value: dict[str, Any]) -> None:
        self.load()
        self._data[key] = value

    def flush(self) -> None:
        """Persist the cache (write temp file, then replace)."""

        self.load()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self._path)


@dataclass(frozen=True, slots=True)
class NominatimConfig:
    """Configuration for the Nominatim reverse API."""

    base_url: str = "https://nominatim.openstreetmap.org/reverse"
    accept_language: str = "en"
    zoom: int = 10
    timeout_seconds: float = 20.0
    min_interval_seconds: float = 1.0
    precision: int = 2
    user_agent: str = "prayer-reminder/0.1.0 (home-base naming; please set your own UA)"


def nominatim_reverse_raw(lat: float, lon: float, cfg: NominatimConfig) -> dict[str, Any] | None:
    """Call the reverse API once.

    Returns:
        Parsed JSON dict on success, otherwise None. Network and decode errors
        are logged, not raised: a missing name is never fatal.
    """

    params = {
        "format": "jsonv2",
        "lat": f"{lat:.6f}",
        "lon": f"{lon:.6f}",
        "zoom": str(cfg.zoom),
        "addressdetails": "1",
        "accept-language": cfg.accept_language,
    }
    url = f"{cfg.base_url}?{urllib.parse.urlencode(params)}"
    req = urllib.request.Request(
        url,
        headers={"User-Agent": cfg.user_agent, "Accept": "application/json"},
        method="GET",
    )
    try:
        with urllib.request.urlopen(req, timeout=cfg.timeout_seconds) as resp:  # noqa: S310
            body = resp.read().decode("utf-8", errors="replace")
        raw = json.loads(body)
    except (OSError, ValueError) as exc:
        logger.warning("Reverse geocode of %.4f,%.4f failed: %s", lat, lon, exc)
        return None
    return raw if isinstance(raw, dict) else None


class NominatimReverseGeocoder:
    """Names locations via Nominatim, consulting the disk cache first."""

    def __init__(self, config: NominatimConfig = NominatimConfig(), cache: JsonDiskCache | None = None) -> None:
        self._cfg = config
        self._cache = cache
        self._last_request_at = 0.0

    def lookup(self, coordinates: Coordinates) -> PlaceName | None:
        key = coord_key(coordinates.latitude, coordinates.longitude, self._cfg.precision)
        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                return PlaceName(
                    name=str(cached.get("name", "")),
                    country_code=cached.get("country_code"),
                    display_name=str(cached.get("display_name", "")),
                )

        self._sleep_if_needed()
        raw = nominatim_reverse_raw(coordinates.latitude, coordinates.longitude, self._cfg)
        if raw is None:
            return None
        place = place_from_raw(raw)
        if place is not None and self._cache is not None:
            self._cache.set(
                key,
                {"name": place.name, "country_code": place.country_code, "display_name": place.display_name},
            )
            self._cache.flush()
        return place

    def home_base(self, coordinates: Coordinates, name: str | None = None) -> HomeBase:
        """HomeBase for ``coordinates``; an explicit ``name`` skips the lookup."""

        if name:
            return HomeBase(coordinates=coordinates, name=name)
        place = self.lookup(coordinates)
        if place is None:
            return HomeBase(coordinates=coordinates, name=fallback_name(coordinates))
        return HomeBase(coordinates=coordinates, name=place.name, country_code=place.country_code)

    def _sleep_if_needed(self) -> None:
        now = time.time()
        wait = self._cfg.min_interval_seconds - (now - self._last_request_at)
        if wait > 0:
            time.sleep(wait)
        self._last_request_at = time.time()
