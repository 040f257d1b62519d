import logging
import math
from datetime import timedelta

import numpy as np

from .predict import Predictor, utcnow

logger = logging.getLogger(__name__)

# ground track sample spacing in seconds
TRACK_STEP = 10
POLAR_STEP = 2
# orbit numbers are searched this many samples at a time
SEARCH_CHUNK = 256
MAX_TRACK_SAMPLES = 40000

XKMPER = 6378.135


def normalize_lon(lon):
    while lon > 180.0:
        lon -= 360.0
    while lon < -180.0:
        lon += 360.0
    return lon


def calc_footprint(lat_deg, lon_deg, alt_km):
    """
    Ring of (lon, lat) points bounding the area that can see the satellite.
    Two points per bearing, the second mirrored about the sub-satellite
    meridian, so the ring stays closed across the antimeridian.
    """
    footprint = 12756.33 * math.acos(XKMPER / (XKMPER + alt_km))
    beta = (0.5 * footprint) / XKMPER
    sat_lat = math.radians(lat_deg)
    sat_lon = math.radians(lon_deg)

    points = []
    for azi in range(180):
        azimuth = math.radians(azi)
        range_lat = math.asin(
            math.sin(sat_lat) * math.cos(beta) + math.cos(azimuth) * math.sin(beta) * math.cos(sat_lat))
        num = math.cos(beta) - math.sin(sat_lat) * math.sin(range_lat)
        dem = math.cos(sat_lat) * math.cos(range_lat)

        if dem == 0:
            range_lon = sat_lon if num != 0 else 0.0
        elif abs(num / dem) > 1.0:
            range_lon = sat_lon
        elif dem > 0:
            range_lon = sat_lon - math.acos(num / dem)
        else:
            range_lon = sat_lon + math.acos(num / dem) + math.pi

        while range_lon < -math.pi:
            range_lon += 2 * math.pi
        while range_lon > math.pi:
            range_lon -= 2 * math.pi

        range_lon_deg = math.degrees(range_lon)
        range_lat_deg = math.degrees(range_lat)

        diff = (lon_deg - range_lon_deg) % 360.0
        mirror_lon_deg = normalize_lon(lon_deg + diff)

        points.append((range_lon_deg, range_lat_deg))
        points.append((mirror_lon_deg, range_lat_deg))
    return points


class Vessel:
    def __init__(self, id, name, line1, line2, location, aos=None, los=None, predictor=None):
        self.id = id
        self.location = location
        self.line1 = line1
        self.line2 = line2
        self.predictor = predictor or Predictor(name, line1, line2, location)
        self.ground_track = []
        self.footprint = []
        self.polar_track = []
        self.track_start = None
        self.sat = self.predictor.at()
        if aos is not None and los is not None:
            self.polar_track = self.calc_polar_track(aos, los)

    @property
    def name(self):
        return self.predictor.name

    def update_position(self, orbits, now=None):
        now = now or utcnow()
        previous = self.sat.orbit_nr
        self.sat = self.predictor.at(now)
        if self.sat.orbit_nr != previous or not self.ground_track:
            self.update_ground_track(orbits, now)
        self.update_footprint()

    def update_footprint(self):
        self.footprint = calc_footprint(self.sat.lat_deg, self.sat.lon_deg, self.sat.alt_km)

    def _search(self, start, step, done):
        # walks from `start` in `step` second increments and returns the offset
        # of the first sample for which done(orbit_number) holds
        taken = 0
        while taken < MAX_TRACK_SAMPLES:
            offsets = step * np.arange(taken + 1, taken + SEARCH_CHUNK + 1)
            hits = np.nonzero(done(self.predictor.orbit_number(self.predictor.offset(start, offsets))))[0]
            if hits.size:
                return int(offsets[hits[0]])
            taken += SEARCH_CHUNK
        return None

    def update_ground_track(self, orbits, now=None):
        now = now or utcnow()
        this_orbit = self.predictor.orbit_number(now)

        back = self._search(now, -TRACK_STEP, lambda nr: nr != this_orbit)
        if back is None:
            logger.warning(f"{self.name}: orbit start not found, ground track skipped")
            self.ground_track = []
            return
        end = self._search(now, TRACK_STEP, lambda nr: nr >= this_orbit + orbits)
        if end is None:
            logger.warning(f"{self.name}: ground track truncated")
            end = TRACK_STEP * MAX_TRACK_SAMPLES

        # first sample lies in the current orbit, last one starts orbit this + N
        offsets = np.arange(back + TRACK_STEP, end + 1, TRACK_STEP)
        lons, lats = self.predictor.ground_points(self.predictor.offset(now, offsets))
        self.ground_track = list(zip(lons.tolist(), lats.tolist()))
        self.track_start = now + timedelta(seconds=int(offsets[0]))
        logger.debug(f"{self.name}: ground track of {len(self.ground_track)} points for orbit {this_orbit}")

    def ground_track_split(self, now=None):
        """(traversed, upcoming) halves of the ground track at `now`."""
        if not self.ground_track or self.track_start is None:
            return [], list(self.ground_track)
        now = now or utcnow()
        elapsed = int((now - self.track_start).total_seconds() // TRACK_STEP) + 1
        elapsed = max(0, min(len(self.ground_track), elapsed))
        return self.ground_track[:elapsed], self.ground_track[elapsed:]

    def calc_polar_track(self, aos, los):
        if los < aos:
            return []
        count = int((los - aos).total_seconds() // POLAR_STEP) + 1
        times = self.predictor.offset(aos, POLAR_STEP * np.arange(count))
        az, el = self.predictor.polar_points(times)
        return list(zip(az.tolist(), el.tolist()))
