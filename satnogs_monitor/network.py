import logging
import queue
import threading
from dataclasses import dataclass
from datetime import datetime, timezone

from .channel import ChannelClosed
from .errors import MonitorError
from .events import CommandResponse, JobsData, StationInfoData

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GetJobs:
    station_id: int


@dataclass(frozen=True)
class GetStationInfo:
    station_id: int


class Connection:
    """
    Runs API requests one at a time on a worker thread and posts the results
    back onto the event channel.
    """
    def __init__(self, channel, client, maxsize=100):
        self.channel = channel
        self.client = client
        self.commands = queue.Queue(maxsize=maxsize)
        self.thread = None

    def start(self):
        self.thread = threading.Thread(target=self.run, name="network", daemon=True)
        self.thread.start()
        return self.thread

    def send(self, command):
        self.commands.put(command)

    def stop(self):
        try:
            self.commands.put_nowait(None)
        except queue.Full:
            # the worker leaves on its own once the event channel is closed
            pass

    def run(self):
        while True:
            command = self.commands.get()
            if command is None:
                break
            try:
                response = self.handle(command)
            except MonitorError as e:
                logger.error(f"{type(command).__name__}({command.station_id}) failed: {e}")
                continue
            try:
                self.channel.send(CommandResponse(response))
            except ChannelClosed:
                break

    def handle(self, command):
        if isinstance(command, GetJobs):
            return JobsData(command.station_id, self.fetch_jobs(command.station_id))
        if isinstance(command, GetStationInfo):
            return StationInfoData(command.station_id, self.client.station_info(command.station_id))
        raise TypeError(f"unknown command {command!r}")

    def fetch_jobs(self, station_id, now=None):
        now = now or datetime.now(timezone.utc)
        observations = {o.id: o for o in self.client.observations(ground_station=station_id, start=now)}
        pairs = []
        for job in self.client.jobs(station_id):
            observation = observations.get(job.id)
            if observation is None:
                logger.debug(f"job {job.id} has no matching observation")
                continue
            pairs.append((job, observation))
        logger.info(f"station {station_id}: {len(pairs)} job(s)")
        return pairs
