import struct
from datetime import datetime, timezone

import numpy as np
import pytest
from watchdog.events import FileClosedEvent, FileCreatedEvent, FileModifiedEvent

from conftest import drain
from satnogs_monitor.errors import WaterfallHeaderError
from satnogs_monitor.events import WaterfallClosed, WaterfallCreated, WaterfallData
from satnogs_monitor.waterfall import (
    HEADER_SIZE, WaterfallHeader, WaterfallWatcher, downsample, frequency_axis, parse_timestamp,
)

TIMESTAMP = b"2020-03-23T09:34:47.193416Z"
FFT_SIZE = 4


def header_bytes(timestamp=TIMESTAMP, fft_size=FFT_SIZE, sample_rate=48000, nfft_per_row=2,
                 center_freq=145800000.0, endianness=1):
    return timestamp.ljust(32, b"\0") + struct.pack(">IIIfI", fft_size, sample_rate, nfft_per_row,
                                                     center_freq, endianness)


def record_bytes(timestamp, power):
    return struct.pack("<q", timestamp) + np.asarray(power, dtype="<f4").tobytes()


def test_header_round_trip():
    header = WaterfallHeader.from_bytes(header_bytes())
    assert header.timestamp == datetime(2020, 3, 23, 9, 34, 47, 193416, tzinfo=timezone.utc)
    assert header.fft_size == FFT_SIZE
    assert header.sample_rate == 48000
    assert header.nfft_per_row == 2
    assert header.center_freq == 145800000.0
    assert header.endianness == 1
    assert header.record_size == 8 + 4 * FFT_SIZE


def test_header_timestamp_fills_whole_field():
    stamp = b"2020-03-23T09:34:47.193416+00:00"
    assert len(stamp) == 32
    header = WaterfallHeader.from_bytes(header_bytes(timestamp=stamp))
    assert header.timestamp.year == 2020


@pytest.mark.parametrize("stamp", [
    b"2020-03!23T09:34:47.193416Z",
    b"\xde\xad\xc0\xde",
    b"2020-03-23T09:34:47",
    b"",
])
def test_malformed_timestamp_is_an_error(stamp):
    with pytest.raises(WaterfallHeaderError):
        WaterfallHeader.from_bytes(header_bytes(timestamp=stamp))


def test_short_header_is_an_error():
    with pytest.raises(WaterfallHeaderError):
        WaterfallHeader.from_bytes(header_bytes()[:40])


def test_parse_timestamp_stops_at_nul():
    assert parse_timestamp(TIMESTAMP + b"\0\xde\xad\xc0\xde").minute == 34


def test_frequency_axis():
    axis = frequency_axis(5, 1000)
    assert axis.tolist() == [-500.0, -250.0, 0.0, 250.0, 500.0]


@pytest.fixture
def capture_file(tmp_path):
    return tmp_path / "receiving_waterfall_1234_2020-03-23T09-34-47.dat"


def test_records_are_framed(tmp_path, capture_file, channel):
    watcher = WaterfallWatcher(tmp_path, channel)
    records = [record_bytes(i, [i, i + 1, i + 2, i + 3]) for i in range(3)]
    # header and two and a half records
    capture_file.write_bytes(header_bytes() + records[0] + records[1] + records[2][:12])

    watcher.dispatch(FileCreatedEvent(str(capture_file)))
    created = drain(channel)
    assert len(created) == 1
    assert isinstance(created[0], WaterfallCreated)
    assert created[0].observation_id == 1234
    assert created[0].frequencies.tolist() == [-24000.0, -8000.0, 8000.0, 24000.0]

    watcher.dispatch(FileModifiedEvent(str(capture_file)))
    data = drain(channel)
    assert [type(e) for e in data] == [WaterfallData, WaterfallData]
    assert [e.timestamp for e in data] == [0, 1]
    assert data[1].power.tolist() == [1.0, 2.0, 3.0, 4.0]
    assert watcher.capture.cursor == HEADER_SIZE + 2 * len(records[0])

    # nothing new until the rest of the record lands
    watcher.dispatch(FileModifiedEvent(str(capture_file)))
    assert drain(channel) == []

    with open(capture_file, "ab") as f:
        f.write(records[2][12:])
    watcher.dispatch(FileModifiedEvent(str(capture_file)))
    data = drain(channel)
    assert len(data) == 1
    assert data[0].timestamp == 2

    watcher.dispatch(FileClosedEvent(str(capture_file)))
    assert drain(channel) == [WaterfallClosed(1234)]
    assert watcher.capture is None


def test_missing_header_abandons_session(tmp_path, capture_file, channel):
    watcher = WaterfallWatcher(tmp_path, channel, header_timeout=0.05)
    capture_file.write_bytes(b"2020")
    watcher.dispatch(FileCreatedEvent(str(capture_file)))
    assert drain(channel) == []
    assert watcher.capture is None


def test_bad_header_skips_file_only(tmp_path, capture_file, channel):
    watcher = WaterfallWatcher(tmp_path, channel)
    capture_file.write_bytes(header_bytes(timestamp=b"garbage"))
    watcher.dispatch(FileCreatedEvent(str(capture_file)))
    assert watcher.capture is None

    other = tmp_path / "receiving_waterfall_99_x.dat"
    other.write_bytes(header_bytes())
    watcher.dispatch(FileCreatedEvent(str(other)))
    events = drain(channel)
    assert [e.observation_id for e in events] == [99]


def test_unrelated_files_are_ignored(tmp_path, channel):
    watcher = WaterfallWatcher(tmp_path, channel)
    other = tmp_path / "satnogs_1234.ogg"
    other.write_bytes(header_bytes())
    watcher.dispatch(FileCreatedEvent(str(other)))
    assert drain(channel) == []


def test_second_capture_waits_for_close(tmp_path, capture_file, channel, caplog):
    watcher = WaterfallWatcher(tmp_path, channel)
    capture_file.write_bytes(header_bytes())
    watcher.dispatch(FileCreatedEvent(str(capture_file)))
    second = tmp_path / "receiving_waterfall_1235_x.dat"
    second.write_bytes(header_bytes())
    watcher.dispatch(FileCreatedEvent(str(second)))
    assert "Ignoring waterfall" in caplog.text
    assert watcher.capture.observation_id == 1234

    # the running capture keeps streaming
    with open(capture_file, "ab") as f:
        f.write(record_bytes(7, [1, 2, 3, 4]))
    watcher.dispatch(FileModifiedEvent(str(capture_file)))
    watcher.dispatch(FileModifiedEvent(str(second)))
    events = drain(channel)
    assert [type(e) for e in events] == [WaterfallCreated, WaterfallData]
    assert events[1].timestamp == 7

    watcher.dispatch(FileClosedEvent(str(capture_file)))
    assert drain(channel) == [WaterfallClosed(1234)]
    assert watcher.capture is None

    # once the first is closed, the next capture is picked up
    third = tmp_path / "receiving_waterfall_1236_x.dat"
    third.write_bytes(header_bytes())
    watcher.dispatch(FileCreatedEvent(str(third)))
    assert [type(e) for e in drain(channel)] == [WaterfallCreated]
    assert watcher.capture.observation_id == 1236
    watcher.discard()


def test_downsample_keeps_peaks():
    power = np.array([1, 9, 2, 3, 8, 4, 5, 6], dtype=np.float32)
    assert downsample(power, 4).tolist() == [9, 3, 8, 6]
    assert downsample(power, 16).tolist() == power.tolist()


def test_downsample_zoom_keeps_center():
    power = np.arange(8, dtype=np.float32)
    assert downsample(power, 8, zoom=2.0).tolist() == [2, 3, 4, 5]
