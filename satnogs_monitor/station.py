import logging

from .job import Job
from .predict import Location, utcnow

logger = logging.getLogger(__name__)


class Station:
    def __init__(self, info, local=False):
        self.info = info
        self.local = local
        self.jobs = []
        self.sys_info = None

    @property
    def id(self):
        return self.info.id

    @property
    def name(self):
        return self.info.name

    @property
    def location(self):
        return Location(self.info.lat, self.info.lng, self.info.altitude)

    def update_info(self, info):
        if info.id != self.info.id:
            raise ValueError(f"station info {info.id} does not belong to station {self.info.id}")
        self.info = info

    def update_jobs(self, pairs):
        """Add the (job, observation) pairs not queued yet. Returns how many were added."""
        known = {job.id for job in self.jobs}
        added = 0
        for network_job, observation in pairs:
            if network_job.id in known:
                continue
            self.jobs.append(Job(network_job, observation, self.location))
            known.add(network_job.id)
            added += 1
        self.jobs.sort(key=lambda job: job.start)
        if added:
            logger.info(f"station {self.id}: {added} new job(s)")
        return added

    def remove_finished_jobs(self, now=None):
        now = now or utcnow()
        before = len(self.jobs)
        self.jobs = [job for job in self.jobs if job.end > now]
        removed = before - len(self.jobs)
        if removed:
            logger.debug(f"station {self.id}: dropped {removed} finished job(s)")
        return removed

    def update_sys_info(self, sys_info):
        self.sys_info = sys_info

    def next_job(self):
        return self.jobs[0] if self.jobs else None
