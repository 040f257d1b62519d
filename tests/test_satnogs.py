from datetime import datetime, timezone

import pytest
import requests

from conftest import ISS_LINE1, ISS_LINE2, ISS_NAME
from satnogs_monitor.channel import Channel
from satnogs_monitor.errors import NetworkError, ProtocolError
from satnogs_monitor.events import CommandResponse, JobsData, StationInfoData
from satnogs_monitor.network import Connection, GetJobs, GetStationInfo
from satnogs_monitor.satnogs import NetworkJob, Observation, SatnogsClient, StationInfo, StationStatus

STATION = {
    "id": 1234, "name": "Rooftop", "altitude": 420, "min_horizon": 10, "lat": 48.5, "lng": 9.05,
    "qthlocator": "JN48mm", "location": "JN48mm", "antenna": [], "created": "2019-01-01T00:00:00Z",
    "last_seen": "2020-03-23T09:34:47Z", "status": "Online", "observations": 1000, "description": "",
}


def job_json(id):
    return {
        "id": id, "start": "2020-03-23T10:00:00Z", "end": "2020-03-23T10:10:00Z", "ground_station": 1234,
        "tle0": ISS_NAME, "tle1": ISS_LINE1, "tle2": ISS_LINE2, "frequency": 145800000, "mode": None,
        "transmitter": "abc", "baud": None,
    }


def observation_json(id):
    return {
        "id": id, "start": "2020-03-23T10:00:00Z", "end": "2020-03-23T10:10:00Z", "ground_station": 1234,
        "transmitter": "abc", "norad_cat_id": 25544, "payload": None, "waterfall": None, "demoddata": [],
        "station_name": "Rooftop", "station_lat": 48.5, "station_lng": 9.05, "station_alt": 420,
        "vetted_status": "unknown", "rise_azimuth": 200.0, "set_azimuth": 40.0, "max_altitude": 63.0,
        "archived": False, "archive_url": None, "client_version": "", "client_metadata": "",
    }


class FakeResponse:
    def __init__(self, data, status_code=200, url="http://test"):
        self.data = data
        self.status_code = status_code
        self.url = url

    def json(self):
        if isinstance(self.data, Exception):
            raise self.data
        return self.data

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} for {self.url}")


class FakeSession:
    def __init__(self, responses):
        self.responses = responses
        self.headers = {}
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, dict(params or {})))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def test_station_info():
    session = FakeSession([FakeResponse(STATION)])
    info = SatnogsClient("https://network.example/api/", session=session).station_info(1234)
    assert session.calls[0][0] == "https://network.example/api/stations/1234/"
    assert info.name == "Rooftop"
    assert info.status is StationStatus.ONLINE
    assert info.last_seen == datetime(2020, 3, 23, 9, 34, 47, tzinfo=timezone.utc)
    assert session.headers["User-Agent"] == "satnogs-monitor"


def test_unknown_status_is_offline():
    assert StationInfo.from_json({**STATION, "status": "weird"}).status is StationStatus.OFFLINE


def test_jobs_with_null_mode():
    session = FakeSession([FakeResponse([job_json(1), job_json(2)])])
    jobs = SatnogsClient(session=session).jobs(1234)
    assert session.calls[0][1] == {"ground_station": 1234}
    assert [job.id for job in jobs] == [1, 2]
    assert jobs[0].mode == ""
    assert jobs[0].start.tzinfo is not None


def test_observations_are_paged():
    page1 = [observation_json(i) for i in range(25)]
    page2 = [observation_json(i) for i in range(25, 28)]
    session = FakeSession([FakeResponse(page1), FakeResponse(page2)])
    start = datetime(2020, 3, 23, tzinfo=timezone.utc)
    observations = SatnogsClient(session=session).observations(ground_station=1234, start=start)
    assert len(observations) == 28
    assert [params["page"] for _, params in session.calls] == [1, 2]
    assert session.calls[0][1]["start"] == "2020-03-23T00:00:00+00:00"


def test_observations_stop_at_404():
    page1 = [observation_json(i) for i in range(25)]
    session = FakeSession([FakeResponse(page1), FakeResponse({"detail": "Invalid page."}, 404)])
    assert len(SatnogsClient(session=session).observations(norad_cat_id=25544)) == 25
    assert session.calls[0][1]["satellite__norad_cat_id"] == 25544


def test_http_errors():
    session = FakeSession([FakeResponse({}, 500), requests.ConnectionError("down")])
    client = SatnogsClient(session=session)
    with pytest.raises(NetworkError):
        client.station_info(1)
    with pytest.raises(NetworkError):
        client.jobs(1)


def test_malformed_payloads():
    session = FakeSession([FakeResponse(ValueError("no json")), FakeResponse([{"id": 1}])])
    client = SatnogsClient(session=session)
    with pytest.raises(ProtocolError):
        client.station_info(1)
    with pytest.raises(ProtocolError):
        client.jobs(1)


class FakeClient:
    def __init__(self, jobs, observations, fail=False):
        self._jobs = jobs
        self._observations = observations
        self.fail = fail

    def jobs(self, station_id):
        if self.fail:
            raise NetworkError("offline")
        return self._jobs

    def observations(self, ground_station=None, start=None):
        return self._observations

    def station_info(self, station_id):
        return StationInfo.from_json({**STATION, "id": station_id})


def test_jobs_are_paired_with_observations():
    jobs = [NetworkJob.from_json(job_json(i)) for i in (1, 2, 3)]
    observations = [Observation.from_json(observation_json(i)) for i in (3, 1, 9)]
    connection = Connection(Channel(), FakeClient(jobs, observations))
    pairs = connection.fetch_jobs(1234)
    assert [(job.id, obs.id) for job, obs in pairs] == [(1, 1), (3, 3)]


def test_worker_posts_responses():
    channel = Channel()
    jobs = [NetworkJob.from_json(job_json(1))]
    observations = [Observation.from_json(observation_json(1))]
    connection = Connection(channel, FakeClient(jobs, observations))
    thread = connection.start()
    connection.send(GetJobs(1234))
    connection.send(GetStationInfo(99))

    first = channel.recv(timeout=2)
    second = channel.recv(timeout=2)
    assert isinstance(first, CommandResponse) and isinstance(first.data, JobsData)
    assert first.data.station_id == 1234 and len(first.data.pairs) == 1
    assert isinstance(second.data, StationInfoData) and second.data.info.id == 99

    connection.stop()
    thread.join(2)
    assert not thread.is_alive()


def test_worker_survives_failed_fetch():
    channel = Channel()
    connection = Connection(channel, FakeClient([], [], fail=True))
    thread = connection.start()
    connection.send(GetJobs(1))
    connection.send(GetStationInfo(2))
    response = channel.recv(timeout=2)
    assert isinstance(response.data, StationInfoData)
    connection.stop()
    thread.join(2)


def test_worker_exits_when_channel_closed():
    channel = Channel()
    channel.close()
    connection = Connection(channel, FakeClient([], []))
    thread = connection.start()
    connection.send(GetStationInfo(2))
    thread.join(2)
    assert not thread.is_alive()
