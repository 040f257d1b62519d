from datetime import datetime, timedelta, timezone

import pytest

from satnogs_monitor.channel import Channel
from satnogs_monitor.predict import Location
from satnogs_monitor.satnogs import NetworkJob, Observation, StationInfo, StationStatus

ISS_NAME = "ISS (ZARYA)"
ISS_LINE1 = "1 25544U 98067A   14020.93268519  .00009878  00000-0  18200-3 0  5082"
ISS_LINE2 = "2 25544  51.6498 109.4756 0003572  55.9686 274.8005 15.49815350868473"

# a day after the element set epoch
EPOCH = datetime(2014, 1, 21, 22, 0, tzinfo=timezone.utc)


@pytest.fixture
def channel():
    return Channel(100)


@pytest.fixture
def location():
    return Location(48.5, 9.0, 400)


def make_station_info(id, name=None, status=StationStatus.ONLINE):
    return StationInfo(id=id, name=name or f"station {id}", lat=48.5, lng=9.0, altitude=400, status=status)


def make_pair(id, start, minutes=10, station=1):
    job = NetworkJob(
        id=id,
        start=start,
        end=start + timedelta(minutes=minutes),
        ground_station=station,
        tle0=ISS_NAME,
        tle1=ISS_LINE1,
        tle2=ISS_LINE2,
        frequency=145800000,
        mode="FM",
    )
    observation = Observation(
        id=id,
        start=job.start,
        end=job.end,
        ground_station=station,
        norad_cat_id=25544,
        max_altitude=42.0,
    )
    return job, observation


def drain(channel):
    events = []
    while channel.qsize():
        events.append(channel.recv(timeout=0))
    return events
