import logging
import signal
import threading
import time

from . import sysinfo
from .channel import ChannelClosed
from .errors import MonitorError
from .events import Input, Resize, RotatorPosition, SystemInfo, Tick

logger = logging.getLogger(__name__)

SYSINFO_INTERVAL = 4.0
ROTATOR_MAX_FAILURES = 3


def block_resize_signal():
    """
    Block SIGWINCH for this thread and every thread started after it, so only
    resize_listener ever sees it. Call before any other thread exists.
    """
    if not hasattr(signal, "SIGWINCH"):
        return False
    signal.pthread_sigmask(signal.SIG_BLOCK, {signal.SIGWINCH})
    return True


def resize_listener(channel):
    while True:
        signal.sigwait({signal.SIGWINCH})
        channel.send(Resize())


def tick_timer(channel, interval=1.0):
    while True:
        time.sleep(interval)
        channel.send(Tick())


def input_reader(channel, screen):
    while True:
        for key in screen.get_input():
            if key == "window resize":
                channel.send(Resize())
            elif isinstance(key, str):
                channel.send(Input(key))


def sysinfo_sampler(channel, station_ids, interval=SYSINFO_INTERVAL, sample=sysinfo.sample):
    station_ids = tuple(station_ids)
    while True:
        started = time.monotonic()
        info = sample()
        try:
            channel.send(SystemInfo(station_ids, info))
        except ChannelClosed:
            logger.error("Failed to send system info, stopping sampler")
            break
        time.sleep(max(0.0, interval - (time.monotonic() - started)))


def rotator_poller(channel, client, interval=1.0, max_failures=ROTATOR_MAX_FAILURES):
    # no reconnect: once the rotator is lost it stays lost for this session
    try:
        client.connect()
    except MonitorError as e:
        logger.error(f"{e}, rotator disabled")
        return
    failures = 0
    try:
        while True:
            try:
                azimuth, elevation = client.position()
            except MonitorError as e:
                failures += 1
                logger.warning(f"rotator position read failed ({failures}/{max_failures}): {e}")
                if failures >= max_failures:
                    logger.error("Lost connection to rotctld, rotator disabled")
                    return
            else:
                failures = 0
                channel.send(RotatorPosition(azimuth, elevation))
            time.sleep(interval)
    finally:
        client.close()


def waterfall_producer(channel, watcher):
    try:
        watcher.run()
    except (MonitorError, OSError) as e:
        logger.error(f"Waterfall watcher stopped: {e}")


class Supervisor:
    """Starts the optional producer threads and keeps track of them."""

    def __init__(self, channel):
        self.channel = channel
        self.threads = []

    def spawn(self, name, target, *args, **kwargs):
        def runner():
            try:
                target(self.channel, *args, **kwargs)
            except ChannelClosed:
                pass
            except Exception:
                logger.exception(f"{name} crashed")
            logger.debug(f"{name} stopped")

        thread = threading.Thread(target=runner, name=name, daemon=True)
        thread.start()
        self.threads.append(thread)
        return thread

    def adopt(self, thread):
        self.threads.append(thread)
        return thread

    def running(self):
        return [t.name for t in self.threads if t.is_alive()]

    def join(self, timeout=None):
        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in self.threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
