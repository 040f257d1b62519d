from conftest import ISS_LINE1, ISS_LINE2, ISS_NAME

from satnogs_monitor.tle import load_tle_file, norad_id, parse_tle, select

NOAA_NAME = "NOAA 19"
NOAA_LINE1 = "1 33591U 09005A   14020.51844925  .00000082  00000-0  69426-4 0  7377"
NOAA_LINE2 = "2 33591  98.8059 338.0614 0013791 169.1722 190.9726 14.11702226253329"


def tle_text():
    return "\n".join([
        "﻿" + ISS_NAME,
        ISS_LINE1,
        ISS_LINE2,
        "garbage",
        NOAA_NAME + "   ",
        NOAA_LINE1,
        NOAA_LINE2,
        "NOAA 18",
        "1 28654U",
    ])


def test_parse_skips_incomplete_sets():
    triples = parse_tle(tle_text())
    assert triples == [(ISS_NAME, ISS_LINE1, ISS_LINE2), (NOAA_NAME, NOAA_LINE1, NOAA_LINE2)]


def test_parse_empty():
    assert parse_tle("") == []
    assert parse_tle(ISS_LINE1 + "\n" + ISS_LINE2) == []


def test_load_file(tmp_path):
    path = tmp_path / "weather.txt"
    path.write_text(tle_text(), encoding="utf-8")
    assert [name for name, _, _ in load_tle_file(path)] == [ISS_NAME, NOAA_NAME]


def test_norad_id():
    assert norad_id(ISS_LINE1) == 25544
    assert norad_id(NOAA_LINE1) == 33591


def test_select_by_substring(caplog):
    triples = parse_tle(tle_text())
    found = select(triples, ["noaa", "ISS", "zarya", "METEOR"])
    assert [name for name, _, _ in found] == [NOAA_NAME, ISS_NAME]
    assert "'METEOR' not found" in caplog.text
