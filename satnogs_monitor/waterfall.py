"""
Tails the waterfall files written by satnogs-client while an observation runs.

A file starts with a 52 byte header:

    32 bytes  start time, RFC 3339, NUL padded
    u32       fft size                  (big endian)
    u32       sample rate               (big endian)
    u32       ffts per row              (big endian)
    f32       center frequency          (big endian)
    u32       endianness of the records (big endian)

followed by one record per FFT: a little endian i64 timestamp and fft size
little endian f32 power values.
"""

import logging
import os
import queue
import re
import struct
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import numpy as np
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .errors import TransportError, WaterfallHeaderError
from .events import WaterfallClosed, WaterfallCreated, WaterfallData

logger = logging.getLogger(__name__)

TIMESTAMP_SIZE = 32
HEADER_FIELDS = struct.Struct(">IIIfI")
HEADER_SIZE = TIMESTAMP_SIZE + HEADER_FIELDS.size
RECORD_TIMESTAMP = struct.Struct("<q")
FILE_PATTERN = re.compile(r"receiving_waterfall_(\d+)_.*\.dat")


def parse_timestamp(buf):
    end = buf.find(b"\0")
    raw = buf if end < 0 else buf[:end]
    try:
        text = raw.decode("ascii")
        timestamp = datetime.fromisoformat(text)
    except (UnicodeDecodeError, ValueError) as e:
        raise WaterfallHeaderError(f"invalid waterfall timestamp {raw!r}: {e}")
    if timestamp.tzinfo is None:
        raise WaterfallHeaderError(f"waterfall timestamp {text!r} is not RFC 3339")
    return timestamp


@dataclass(frozen=True)
class WaterfallHeader:
    timestamp: datetime
    fft_size: int
    sample_rate: int
    nfft_per_row: int
    center_freq: float
    endianness: int

    @classmethod
    def from_bytes(cls, buf):
        if len(buf) < HEADER_SIZE:
            raise WaterfallHeaderError(f"waterfall header is {len(buf)} bytes, expected {HEADER_SIZE}")
        timestamp = parse_timestamp(buf[:TIMESTAMP_SIZE])
        fft_size, sample_rate, nfft_per_row, center_freq, endianness = \
            HEADER_FIELDS.unpack_from(buf, TIMESTAMP_SIZE)
        if fft_size == 0:
            raise WaterfallHeaderError("waterfall header has an fft size of 0")
        return cls(timestamp, fft_size, sample_rate, nfft_per_row, center_freq, endianness)

    @classmethod
    def from_reader(cls, reader):
        return cls.from_bytes(reader.read(HEADER_SIZE))

    @property
    def record_size(self):
        return RECORD_TIMESTAMP.size + 4 * self.fft_size

    def frequencies(self):
        return frequency_axis(self.fft_size, self.sample_rate)


def frequency_axis(fft_size, sample_rate):
    return np.linspace(-0.5 * sample_rate, 0.5 * sample_rate, fft_size, dtype=np.float32)


def parse_record(buf, fft_size):
    (timestamp,) = RECORD_TIMESTAMP.unpack_from(buf)
    power = np.frombuffer(buf, dtype="<f4", count=fft_size, offset=RECORD_TIMESTAMP.size).copy()
    return timestamp, power


class Capture:
    """An open waterfall file and how far into it we have read."""

    def __init__(self, observation_id, path, file, header):
        self.observation_id = observation_id
        self.path = path
        self.file = file
        self.header = header
        self.cursor = HEADER_SIZE

    def available(self):
        return os.fstat(self.file.fileno()).st_size - self.cursor >= self.header.record_size

    def read_record(self):
        size = self.header.record_size
        self.file.seek(self.cursor)
        buf = self.file.read(size)
        if len(buf) != size:
            raise TransportError(f"short read in {self.path} at offset {self.cursor}")
        self.cursor += size
        return parse_record(buf, self.header.fft_size)

    def close(self):
        self.file.close()


class _Forwarder(FileSystemEventHandler):
    def __init__(self, events):
        self.events = events

    def on_any_event(self, event):
        self.events.put(event)


class WaterfallWatcher:
    def __init__(self, path, channel, header_timeout=5.0, poll_interval=0.01):
        self.path = Path(path)
        self.channel = channel
        self.header_timeout = header_timeout
        self.poll_interval = poll_interval
        self.events = queue.Queue()
        self.observer = None
        self.capture = None
        self._stop = threading.Event()

    def start(self):
        self.observer = Observer()
        self.observer.schedule(_Forwarder(self.events), str(self.path), recursive=False)
        self.observer.start()
        logger.info(f"watching {self.path} for waterfalls")

    def stop(self):
        self._stop.set()
        self.events.put(None)

    def run(self):
        if self.observer is None:
            self.start()
        try:
            while not self._stop.is_set():
                event = self.events.get()
                if event is None:
                    break
                self.dispatch(event)
        finally:
            self.observer.stop()
            self.observer.join()
            self.discard()

    def dispatch(self, event):
        if event.is_directory:
            return
        path = event.src_path
        if isinstance(path, bytes):
            path = os.fsdecode(path)
        match = FILE_PATTERN.fullmatch(os.path.basename(path))
        if match is None:
            return
        observation_id = int(match.group(1))
        logger.debug(f"{event.event_type} {path}")

        if event.event_type == "created":
            self.on_created(observation_id, path)
        elif event.event_type == "modified":
            self.on_modified(observation_id)
        elif event.event_type == "closed":
            self.on_closed(observation_id)

    def on_created(self, observation_id, path):
        if self.capture is not None:
            if self.capture.observation_id != observation_id:
                logger.warning(f"Ignoring waterfall {path}, observation "
                               f"{self.capture.observation_id} is still being written")
            return

        try:
            file = open(path, "rb")
        except OSError as e:
            logger.error(f"Failed to open waterfall file {path}: {e}")
            return

        try:
            header = self.wait_for_header(file)
        except (WaterfallHeaderError, OSError) as e:
            logger.error(f"Skipping waterfall {path}: {e}")
            file.close()
            return

        self.capture = Capture(observation_id, path, file, header)
        logger.info(f"Waterfall for observation {observation_id}: {header.fft_size} bins, "
                    f"{header.sample_rate} S/s at {header.center_freq / 1e6:.3f} MHz")
        self.channel.send(WaterfallCreated(observation_id, header.frequencies()))

    def wait_for_header(self, file):
        deadline = time.monotonic() + self.header_timeout
        while os.fstat(file.fileno()).st_size < HEADER_SIZE:
            if time.monotonic() > deadline:
                raise WaterfallHeaderError(f"header missing after {self.header_timeout}s")
            time.sleep(self.poll_interval)
        file.seek(0)
        return WaterfallHeader.from_reader(file)

    def on_modified(self, observation_id):
        if self.capture is None or self.capture.observation_id != observation_id:
            return
        # partial records stay on disk until the next modification
        while self.capture.available():
            timestamp, power = self.capture.read_record()
            self.channel.send(WaterfallData(timestamp, power))

    def on_closed(self, observation_id):
        if self.capture is None or self.capture.observation_id != observation_id:
            return
        logger.info(f"Closed waterfall file for observation {observation_id}")
        self.discard()
        self.channel.send(WaterfallClosed(observation_id))

    def discard(self):
        if self.capture is not None:
            self.capture.close()
            self.capture = None


class WaterfallSession:
    """What the UI keeps of the running waterfall."""

    def __init__(self, observation_id, frequencies, rows=200):
        self.observation_id = observation_id
        self.frequencies = frequencies
        self.rows = deque(maxlen=rows)

    def add_row(self, timestamp, power):
        self.rows.append((timestamp, power))

    def latest(self):
        return self.rows[-1] if self.rows else None


def downsample(power, width, zoom=1.0):
    """
    Fit `power` into `width` bins, keeping the strongest value of each bin.
    With zoom > 1 only the center 1/zoom of the spectrum is kept.
    """
    power = np.asarray(power)
    if width <= 0 or power.size == 0:
        return np.empty(0, dtype=power.dtype)
    keep = max(1, int(power.size / max(1.0, zoom)))
    start = (power.size - keep) // 2
    power = power[start:start + keep]
    if power.size <= width:
        return power
    edges = np.linspace(0, power.size, width + 1).astype(int)
    return np.maximum.reduceat(power, edges[:-1])
