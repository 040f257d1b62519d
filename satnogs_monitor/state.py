import logging
from collections import deque

from .predict import utcnow
from .station import Station
from .vessel import Vessel
from .waterfall import WaterfallSession

logger = logging.getLogger(__name__)

LOG_SIZE = 100


class State:
    """Everything the dashboard shows. Only the UI loop touches it."""

    def __init__(self, log_size=LOG_SIZE):
        self.stations = {}
        self.vessels = {}
        self.active_station = 0
        self.rotator = None
        self.waterfall = None
        self.log = deque(maxlen=log_size)

    def add_station(self, info, local=False):
        self.stations[info.id] = Station(info, local)
        self.stations = dict(sorted(self.stations.items()))
        if self.active_station == 0:
            self.active_station = info.id
        return self.stations[info.id]

    def active(self):
        return self.stations.get(self.active_station)

    def update_station_info(self, info):
        station = self.stations.get(info.id)
        if station is None:
            logger.warning(f"station info for unknown station {info.id}")
            return False
        station.update_info(info)
        return True

    def update_jobs(self, station_id, pairs):
        station = self.stations.get(station_id)
        if station is None:
            logger.warning(f"jobs for unknown station {station_id}")
            return False
        station.update_jobs(pairs)
        return True

    def remove_finished_jobs(self, now=None):
        now = now or utcnow()
        for station in self.stations.values():
            station.remove_finished_jobs(now)

    def update_sys_info(self, station_ids, sys_info):
        for station_id in station_ids:
            station = self.stations.get(station_id)
            if station is not None:
                station.update_sys_info(sys_info)

    def active_job(self):
        station = self.active()
        if station is None:
            return None
        return station.next_job()

    def update_vessel_position(self, orbits, now=None):
        job = self.active_job()
        if job is not None:
            job.update_position(orbits, now)

    def update_ground_tracks(self, orbits, now=None):
        job = self.active_job()
        if job is not None:
            job.update_ground_track(orbits, now)

    def add_vessel(self, id, name, line1, line2, location):
        vessel = Vessel(id, name, line1, line2, location)
        self.vessels[id] = vessel
        return vessel

    def update_tracked_vessels(self, orbits, now=None):
        for vessel in self.vessels.values():
            vessel.update_position(orbits, now)

    def next_station(self):
        if len(self.stations) > 1:
            ids = list(self.stations)
            self.active_station = ids[(ids.index(self.active_station) + 1) % len(ids)]
        return self.active_station

    def prev_station(self):
        if len(self.stations) > 1:
            ids = list(self.stations)
            self.active_station = ids[(ids.index(self.active_station) - 1) % len(ids)]
        return self.active_station

    def set_rotator(self, azimuth, elevation):
        self.rotator = (azimuth, elevation)

    def start_waterfall(self, observation_id, frequencies, rows):
        if self.waterfall is not None and self.waterfall.observation_id != observation_id:
            logger.info(f"waterfall {self.waterfall.observation_id} replaced by {observation_id}")
        self.waterfall = WaterfallSession(observation_id, frequencies, rows)

    def close_waterfall(self, observation_id):
        if self.waterfall is not None and self.waterfall.observation_id == observation_id:
            self.waterfall = None

    def add_log(self, entry):
        self.log.append(entry)
