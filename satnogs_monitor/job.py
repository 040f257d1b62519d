from .vessel import Vessel


class Job:
    """A scheduled observation on one station, with the satellite it points at."""

    def __init__(self, network_job, observation, location, vessel=None):
        self.network_job = network_job
        self.observation = observation
        self.vessel = vessel or Vessel(
            observation.norad_cat_id,
            network_job.tle0,
            network_job.tle1,
            network_job.tle2,
            location,
            aos=network_job.start,
            los=network_job.end,
        )

    @property
    def id(self):
        return self.network_job.id

    @property
    def start(self):
        return self.network_job.start

    @property
    def end(self):
        return self.network_job.end

    @property
    def mode(self):
        return self.network_job.mode

    @property
    def frequency_mhz(self):
        return self.network_job.frequency / 1e6

    @property
    def vessel_name(self):
        return self.vessel.name

    def update_position(self, orbits, now=None):
        self.vessel.update_position(orbits, now)

    def update_ground_track(self, orbits, now=None):
        self.vessel.update_ground_track(orbits, now)

    def __repr__(self):
        return f"Job({self.id}, {self.vessel_name!r}, {self.start:%Y-%m-%d %H:%M})"
