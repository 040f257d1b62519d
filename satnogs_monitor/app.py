import logging
import queue
import time

from .channel import ChannelClosed
from .events import (
    CommandResponse, Input, JobsData, Log, Resize, RotatorPosition, Shutdown,
    StationInfoData, SystemInfo, Tick, WaterfallClosed, WaterfallCreated, WaterfallData,
)
from .network import GetJobs, GetStationInfo

logger = logging.getLogger(__name__)

# longest time spent draining queued events before a redraw
DRAIN_BUDGET = 0.016
POSITION_TICKS = 5
SWEEP_TICKS = 60


class App:
    def __init__(self, settings, state, channel, network, renderer, clock=time.monotonic):
        self.settings = settings
        self.state = state
        self.channel = channel
        self.network = network
        self.renderer = renderer
        self.clock = clock
        self.ticks = 0
        self.shutdown = False
        self.last_job_update = None
        self.show_log = False
        self.show_spectrum = settings.ui.spectrum_plot
        self.show_waterfall = settings.ui.waterfall

    @property
    def orbits(self):
        return self.settings.ui.ground_track_num

    def update_jobs(self):
        for station_id in self.state.stations:
            self.network.send(GetJobs(station_id))
        self.last_job_update = self.clock()

    def update_station_info(self):
        for station_id in self.state.stations:
            self.network.send(GetStationInfo(station_id))

    def draw(self):
        self.renderer.draw(self)

    def run(self):
        self.update_jobs()
        self.state.update_ground_tracks(self.orbits)
        self.draw()
        try:
            while not self.shutdown:
                try:
                    event = self.channel.recv()
                except ChannelClosed:
                    break
                self.handle_event(event)
                self.drain()
                self.draw()
        except KeyboardInterrupt:
            self.shutdown = True

    def drain(self):
        deadline = time.monotonic() + DRAIN_BUDGET
        while not self.shutdown:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                event = self.channel.recv(timeout=remaining)
            except queue.Empty:
                break
            except ChannelClosed:
                self.shutdown = True
                break
            self.handle_event(event)

    def handle_event(self, event):
        if isinstance(event, Tick):
            self.handle_tick()
        elif isinstance(event, Input):
            self.handle_input(event.key)
        elif isinstance(event, Log):
            self.state.add_log(event)
        elif isinstance(event, CommandResponse):
            self.handle_response(event.data)
        elif isinstance(event, SystemInfo):
            self.state.update_sys_info(event.station_ids, event.info)
        elif isinstance(event, RotatorPosition):
            self.state.set_rotator(event.azimuth, event.elevation)
        elif isinstance(event, WaterfallCreated):
            self.state.start_waterfall(event.observation_id, event.frequencies, self.settings.ui.waterfall_rows)
        elif isinstance(event, WaterfallData):
            if self.state.waterfall is None:
                logger.debug("waterfall data without an open waterfall")
            else:
                self.state.waterfall.add_row(event.timestamp, event.power)
        elif isinstance(event, WaterfallClosed):
            self.state.close_waterfall(event.observation_id)
        elif isinstance(event, Resize):
            self.renderer.resize()
        elif isinstance(event, Shutdown):
            self.shutdown = True
        else:
            logger.warning(f"ignoring unexpected event {event!r}")

    def handle_response(self, data):
        if isinstance(data, JobsData):
            if self.state.update_jobs(data.station_id, data.pairs) and data.station_id == self.state.active_station:
                self.state.update_vessel_position(self.orbits)
        elif isinstance(data, StationInfoData):
            if data.info is not None:
                self.state.update_station_info(data.info)
        else:
            logger.warning(f"ignoring unexpected response {data!r}")

    def handle_tick(self):
        self.ticks += 1
        if self.clock() - self.last_job_update >= self.settings.job_update_interval:
            self.update_jobs()
            self.update_station_info()
        if self.ticks % POSITION_TICKS == 0:
            self.state.update_vessel_position(self.orbits)
            self.state.update_tracked_vessels(self.orbits)
        if self.ticks % SWEEP_TICKS == 0:
            lead = self.state.active_job()
            self.state.remove_finished_jobs()
            if self.state.active_job() is not lead:
                self.state.update_vessel_position(self.orbits)

    def handle_input(self, key):
        if key in ("q", "Q", "ctrl c"):
            self.shutdown = True
        elif key == "tab":
            self.state.next_station()
            self.state.update_vessel_position(self.orbits)
        elif key == "shift tab":
            self.state.prev_station()
            self.state.update_vessel_position(self.orbits)
        elif key == "l":
            self.show_log = not self.show_log
        elif key == "s":
            self.show_spectrum = not self.show_spectrum
        elif key == "w":
            self.show_waterfall = not self.show_waterfall
        else:
            logger.debug(f"unbound key {key!r}")
