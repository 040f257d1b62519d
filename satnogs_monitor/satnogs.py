"""
SatNOGS Network API client.

Fetches ground station details, the jobs queued for a station and the
observations those jobs belong to from https://network.satnogs.org/api.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import requests

from .errors import NetworkError, ProtocolError
from .settings import DEFAULT_API

logger = logging.getLogger(__name__)

PAGE_SIZE = 25


def parse_datetime(value):
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise ProtocolError(f"invalid timestamp {value!r}")


class StationStatus(enum.Enum):
    ONLINE = "Online"
    OFFLINE = "Offline"
    TESTING = "Testing"

    @classmethod
    def parse(cls, value):
        for status in cls:
            if status.value.lower() == str(value).lower():
                return status
        return cls.OFFLINE


@dataclass
class StationInfo:
    id: int
    name: str
    lat: float
    lng: float
    altitude: float
    status: StationStatus = StationStatus.OFFLINE
    min_horizon: float = 0.0
    qthlocator: str = ""
    location: str = ""
    antenna: list = field(default_factory=list)
    last_seen: Optional[datetime] = None
    observations: int = 0
    description: str = ""

    @classmethod
    def from_json(cls, data):
        try:
            return cls(
                id=int(data["id"]),
                name=data["name"],
                lat=float(data["lat"]),
                lng=float(data["lng"]),
                altitude=float(data["altitude"]),
                status=StationStatus.parse(data.get("status")),
                min_horizon=float(data.get("min_horizon") or 0),
                qthlocator=data.get("qthlocator") or "",
                location=data.get("location") or "",
                antenna=data.get("antenna") or [],
                last_seen=parse_datetime(data["last_seen"]) if data.get("last_seen") else None,
                observations=int(data.get("observations") or 0),
                description=data.get("description") or "",
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError(f"malformed station record: {e}")


@dataclass
class NetworkJob:
    id: int
    start: datetime
    end: datetime
    ground_station: int
    tle0: str
    tle1: str
    tle2: str
    frequency: int
    mode: str = ""
    transmitter: str = ""
    baud: Optional[float] = None

    @classmethod
    def from_json(cls, data):
        try:
            return cls(
                id=int(data["id"]),
                start=parse_datetime(data["start"]),
                end=parse_datetime(data["end"]),
                ground_station=int(data["ground_station"]),
                tle0=data["tle0"],
                tle1=data["tle1"],
                tle2=data["tle2"],
                frequency=int(data["frequency"]),
                mode=data.get("mode") or "",
                transmitter=data.get("transmitter") or "",
                baud=data.get("baud"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError(f"malformed job record: {e}")


@dataclass
class Observation:
    id: int
    start: datetime
    end: datetime
    ground_station: int
    norad_cat_id: int
    rise_azimuth: float = 0.0
    max_altitude: float = 0.0
    set_azimuth: float = 0.0
    transmitter: str = ""
    station_name: str = ""
    vetted_status: str = ""
    waterfall: Optional[str] = None

    @classmethod
    def from_json(cls, data):
        try:
            return cls(
                id=int(data["id"]),
                start=parse_datetime(data["start"]),
                end=parse_datetime(data["end"]),
                ground_station=int(data["ground_station"]),
                norad_cat_id=int(data["norad_cat_id"]),
                rise_azimuth=float(data.get("rise_azimuth") or 0),
                max_altitude=float(data.get("max_altitude") or 0),
                set_azimuth=float(data.get("set_azimuth") or 0),
                transmitter=data.get("transmitter") or "",
                station_name=data.get("station_name") or "",
                vetted_status=data.get("vetted_status") or "",
                waterfall=data.get("waterfall"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError(f"malformed observation record: {e}")


class SatnogsClient:
    def __init__(self, url=DEFAULT_API, api_key=None, session=None, timeout=10):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "satnogs-monitor"})
        if api_key:
            self.session.headers.update({"Authorization": f"Token {api_key}"})

    def _get(self, path, params=None):
        url = f"{self.url}{path}"
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(f"GET {url} failed: {e}")
        return resp

    def _json(self, resp):
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            raise NetworkError(str(e))
        try:
            return resp.json()
        except ValueError as e:
            raise ProtocolError(f"invalid json from {resp.url}: {e}")

    def station_info(self, station_id) -> StationInfo:
        return StationInfo.from_json(self._json(self._get(f"/stations/{station_id}/")))

    def jobs(self, station_id) -> List[NetworkJob]:
        data = self._json(self._get("/jobs/", {"ground_station": station_id}))
        return [NetworkJob.from_json(j) for j in data]

    def observations(self, ground_station=None, start=None, end=None, norad_cat_id=None) -> List[Observation]:
        params = {}
        if ground_station is not None:
            params["ground_station"] = ground_station
        if start is not None:
            params["start"] = start.isoformat()
        if end is not None:
            params["end"] = end.isoformat()
        if norad_cat_id is not None:
            params["satellite__norad_cat_id"] = norad_cat_id

        observations = []
        page = 1
        while True:
            resp = self._get("/observations/", {**params, "page": page})
            # the api answers 404 once we walk past the last page
            if resp.status_code == 404:
                break
            data = self._json(resp)
            observations.extend(Observation.from_json(o) for o in data)
            if len(data) < PAGE_SIZE:
                break
            page += 1
        logger.debug(f"fetched {len(observations)} observations in {page} page(s)")
        return observations
