from dataclasses import dataclass
from datetime import datetime, timezone

import numpy as np
from geopy.distance import geodesic
from skyfield.api import EarthSatellite, load, wgs84
from skyfield.timelib import Time

ts = load.timescale()

MINUTES_PER_DAY = 1440.0
TWO_PI = 2 * np.pi


@dataclass(frozen=True)
class Location:
    lat_deg: float
    lon_deg: float
    alt_m: float = 0.0


@dataclass
class SatState:
    lat_deg: float
    lon_deg: float
    alt_km: float
    vel_km_s: float
    range_km: float
    range_rate_km_s: float
    az_deg: float
    el_deg: float
    orbit_nr: int


def ground_distance_km(location, lat, lon):
    return geodesic((location.lat_deg, location.lon_deg), (lat, lon)).km


class Predictor:
    """Propagates one set of two-line elements as seen from a fixed observer."""

    def __init__(self, name, line1, line2, location):
        self.sat = EarthSatellite(line1, line2, name, ts)
        self.location = location
        self.observer = wgs84.latlon(location.lat_deg, location.lon_deg, elevation_m=location.alt_m)
        self.difference = self.sat - self.observer

    @property
    def name(self):
        return self.sat.name

    def time(self, when=None):
        if when is None:
            return ts.now()
        if isinstance(when, Time):
            return when
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return ts.from_datetime(when)

    def offset(self, when, seconds):
        """Times at `when` plus each entry of `seconds`, as one vector Time."""
        t = self.time(when)
        return ts.tt_jd(t.tt + np.asarray(seconds, dtype=float) / 86400.0)

    def orbit_number(self, when=None):
        # revolutions since epoch from mean motion and drag, as gpredict does it
        t = self.time(when)
        model = self.sat.model
        age = t.tt - self.sat.epoch.tt
        revs = (model.no_kozai * MINUTES_PER_DAY / TWO_PI + age * model.bstar) * age + model.mo / TWO_PI
        orbit = np.floor(revs).astype(np.int64) + model.revnum - 1
        if np.ndim(orbit) == 0:
            return int(orbit)
        return orbit

    def at(self, when=None) -> SatState:
        t = self.time(when)
        geocentric = self.sat.at(t)
        lat, lon = wgs84.latlon_of(geocentric)
        height = wgs84.height_of(geocentric)

        topocentric = self.difference.at(t)
        el, az, distance = topocentric.altaz()
        r = topocentric.position.km
        v = topocentric.velocity.km_per_s
        range_km = float(np.linalg.norm(r))
        range_rate = float(np.dot(r, v) / range_km) if range_km else 0.0

        return SatState(
            lat_deg=float(lat.degrees),
            lon_deg=float(lon.degrees),
            alt_km=float(height.km),
            vel_km_s=float(np.linalg.norm(geocentric.velocity.km_per_s)),
            range_km=range_km,
            range_rate_km_s=range_rate,
            az_deg=float(az.degrees),
            el_deg=float(el.degrees),
            orbit_nr=self.orbit_number(t),
        )

    def ground_points(self, times):
        """(lons, lats) in degrees of the sub-satellite point at each time."""
        lat, lon = wgs84.latlon_of(self.sat.at(times))
        return np.atleast_1d(lon.degrees), np.atleast_1d(lat.degrees)

    def polar_points(self, times):
        """(azimuths, elevations) in degrees as seen from the observer."""
        el, az, _ = self.difference.at(times).altaz()
        return np.atleast_1d(az.degrees), np.atleast_1d(el.degrees)


def utcnow():
    return datetime.now(timezone.utc)
