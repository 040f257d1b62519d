import logging
import math
import re
from datetime import datetime, timezone

import numpy as np
import urwid
from urwid.display import raw

from . import mapdata
from .predict import ground_distance_km
from .satnogs import StationStatus
from .waterfall import downsample

palette = [
    ("black", "black", ""), ("dark_red", "dark red", ""), ("dark_green", "dark green", ""),
    ("brown", "brown", ""), ("dark_blue", "dark blue", ""), ("dark_magenta", "dark magenta", ""),
    ("dark_cyan", "dark cyan", ""), ("dark_gray", "dark gray", ""), ("gray", "light gray", ""),
    ("red", "light red", ""), ("green", "light green", ""), ("yellow", "yellow", ""),
    ("blue", "light blue", ""), ("magenta", "light magenta", ""), ("cyan", "light cyan", ""),
    ("white", "white", ""), ("border", "dark cyan", ""),
    ("tab", "white", "dark cyan"), ("tab_active", "black", "light cyan"),
]

STATUS_COLOURS = {
    StationStatus.ONLINE: "green",
    StationStatus.OFFLINE: "red",
    StationStatus.TESTING: "yellow",
}
LOG_COLOURS = {
    logging.DEBUG: "dark_gray",
    logging.INFO: "gray",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "red",
}
TRACKED_COLOURS = ["magenta", "blue", "brown", "dark_green"]
INTENSITY = " .:-=+*#%@"
BARS = " ▁▂▃▄▅▆▇█"
SPECTRUM_ROWS = 6
WATERFALL_ROWS = 10
LOG_ROWS = 8


def parse_colours(s):
    result = []
    pos = 0
    for match in re.finditer(r'\[(\w+)\](.*?)\[/\1\]', s):
        if match.start() > pos:
            result.append(s[pos:match.start()])
        result.append((match.group(1), match.group(2)))
        pos = match.end()
    if pos < len(s):
        result.append(s[pos:])
    return result or [""]


def format_duration(seconds):
    if seconds < 0:
        return "now"
    if seconds < 60:
        return f"{int(seconds)}s"
    if seconds < 3600:
        return f"{int(seconds // 60)}m {int(seconds % 60)}s"
    if seconds < 86400:
        return f"{int(seconds // 3600)}h {int((seconds % 3600) // 60)}m"
    return f"{int(seconds // 86400)}d {int((seconds % 86400) // 3600)}h"


def latlon_to_map(lat, lon):
    """(row, col) of a position on the world map, None if the position is unknown."""
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    h, w = mapdata.ROWS, mapdata.COLS
    row = int((90 - lat) / 180 * (h - 1))
    col = int((lon + 180) / 360 * (w - 1))
    return max(0, min(h-1, row)), max(0, min(w-1, col))


def draw_map_frame(station, job, vessels, now):
    frame = [list(row.ljust(mapdata.COLS, "⠀")[:mapdata.COLS]) for row in mapdata.WORLD]

    def plot(lat, lon, cell):
        pos = latlon_to_map(lat, lon)
        if pos is not None:
            frame[pos[0]][pos[1]] = cell

    if job is not None:
        vessel = job.vessel
        for lon, lat in vessel.footprint:
            plot(lat, lon, "[dark_cyan]·[/dark_cyan]")
        traversed, upcoming = vessel.ground_track_split(now)
        for lon, lat in traversed:
            plot(lat, lon, "[dark_gray]•[/dark_gray]")
        for lon, lat in upcoming:
            plot(lat, lon, "[yellow]•[/yellow]")

    for i, vessel in enumerate(vessels):
        colour = TRACKED_COLOURS[i % len(TRACKED_COLOURS)]
        plot(vessel.sat.lat_deg, vessel.sat.lon_deg, f"[{colour}]{i+1}[/{colour}]")

    if station is not None:
        plot(station.info.lat, station.info.lng, "[red]O[/red]")

    if job is not None:
        plot(job.vessel.sat.lat_deg, job.vessel.sat.lon_deg, "[white]@[/white]")

    return "\n".join("".join(row) for row in frame)


def normalize(bins, db_min, db_max):
    """0..1 position of each bin between the dB bounds, non-finite bins count as empty."""
    bins = np.nan_to_num(bins, nan=db_min, neginf=db_min, posinf=db_max)
    return np.clip((bins - db_min) / (db_max - db_min), 0.0, 1.0)


def spectrum_lines(power, width, height, db_min, db_max, zoom=1.0):
    """Bar plot of one power row, `height` text lines high, top line first."""
    bins = downsample(power, width, zoom)
    if bins.size == 0:
        return [""] * height
    levels = normalize(bins, db_min, db_max) * height * (len(BARS) - 1)
    lines = []
    for row in range(height - 1, -1, -1):
        cell = np.clip(levels - row * (len(BARS) - 1), 0, len(BARS) - 1).astype(int)
        lines.append("".join(BARS[i] for i in cell))
    return lines


def waterfall_lines(rows, width, height, db_min, db_max, zoom=1.0):
    """Most recent rows first, one intensity character per bin."""
    lines = []
    for _, power in list(rows)[-height:][::-1]:
        bins = downsample(power, width, zoom)
        idx = (normalize(bins, db_min, db_max) * (len(INTENSITY) - 1)).astype(int)
        lines.append("".join(INTENSITY[i] for i in idx))
    return lines


def pointing_error(sat, rotator):
    az_err = ((sat.az_deg - rotator[0] + 180.0) % 360.0) - 180.0
    return az_err, sat.el_deg - rotator[1]


def metric_rows(metrics):
    return [urwid.Columns([
        ('weight', 1, urwid.Text(name)),
        ('weight', 1, urwid.Text(value, align='right'))
    ]) for name, value in metrics]


def station_tabs(app):
    markup = []
    for station in app.state.stations.values():
        colour = STATUS_COLOURS.get(station.info.status, "gray")
        attr = "tab_active" if station.id == app.state.active_station else "tab"
        markup += [(colour, " ▲"), (attr, f" {station.id} - {station.name} "), " "]
    return markup or ["no stations"]


def station_panel(app, now):
    station = app.state.active()
    if station is None:
        return urwid.Text("no station")

    colour = STATUS_COLOURS.get(station.info.status, "gray")
    widgets = [urwid.Text([(colour, station.info.status.value), f" {station.info.qthlocator}"])]

    info = station.sys_info
    if info is not None:
        metrics = []
        if info.cpu_load:
            metrics.append(("CPU", f"{sum(info.cpu_load) / len(info.cpu_load):.0f} %"))
        if info.cpu_temp is not None:
            metrics.append(("Temp", f"{info.cpu_temp:.1f} C"))
        if info.mem_used_percent is not None:
            metrics.append(("Memory", f"{info.mem_used_percent:.0f} %"))
        if info.uptime is not None:
            metrics.append(("Uptime", format_duration(info.uptime)))
        widgets += [urwid.Divider("─")] + metric_rows(metrics)

    job = station.next_job()
    widgets.append(urwid.Divider("─"))
    if job is None:
        widgets.append(urwid.Text("no jobs scheduled", align='center'))
    else:
        sat = job.vessel.sat
        distance = "-"
        if math.isfinite(sat.lat_deg) and math.isfinite(sat.lon_deg):
            distance = f"{ground_distance_km(station.location, sat.lat_deg, sat.lon_deg):.0f} km"
        starts = (job.start - now).total_seconds()
        when = f"in {format_duration(starts)}" if starts > 0 else f"ends in {format_duration((job.end - now).total_seconds())}"
        widgets.append(urwid.Text(("white", f"#{job.id} {job.vessel_name}"), align='center'))
        metrics = [
            ("Start", when),
            ("Frequency", f"{job.frequency_mhz:.3f} MHz"),
            ("Mode", job.mode or "-"),
            ("Rise Az", f"{job.observation.rise_azimuth:.0f} deg"),
            ("Max El", f"{job.observation.max_altitude:.0f} deg"),
            ("Set Az", f"{job.observation.set_azimuth:.0f} deg"),
            ("Azimuth", f"{sat.az_deg:.1f} deg"),
            ("Elevation", f"{sat.el_deg:.1f} deg"),
            ("Range", f"{sat.range_km:.0f} km"),
            ("Range rate", f"{sat.range_rate_km_s:.3f} km/s"),
            ("GC Distance", distance),
            ("Altitude", f"{sat.alt_km:.1f} km"),
            ("Velocity", f"{sat.vel_km_s:.2f} km/s"),
            ("Orbit", f"{sat.orbit_nr}"),
        ]
        if app.state.rotator is not None:
            az_err, el_err = pointing_error(sat, app.state.rotator)
            metrics += [
                ("Rotator", f"{app.state.rotator[0]:.1f} / {app.state.rotator[1]:.1f}"),
                ("Error", f"{az_err:+.1f} / {el_err:+.1f}"),
            ]
        widgets += metric_rows(metrics)

        upcoming = station.jobs[1:6]
        if upcoming:
            widgets.append(urwid.Divider("─"))
            for later in upcoming:
                widgets.append(urwid.Text(
                    f"{later.start:%H:%M} {later.vessel_name[:18]} {later.frequency_mhz:.3f}", wrap='clip'))
    return urwid.Pile(widgets)


def log_lines(entries, rows):
    markup = []
    for entry in list(entries)[-rows:]:
        colour = LOG_COLOURS.get(entry.level, "gray")
        markup += [("dark_gray", f"{entry.created:%H:%M:%S} "),
                   (colour, f"{logging.getLevelName(entry.level)[:4]:4} "), f"{entry.message}\n"]
    if markup:
        markup[-1] = markup[-1].rstrip("\n")
    return markup or [""]


def build(app, cols, now=None):
    now = now or datetime.now(timezone.utc)
    state = app.state
    station = state.active()
    job = station.next_job() if station is not None else None

    header = urwid.Columns([
        urwid.Text(station_tabs(app), wrap='clip'),
        ('pack', urwid.Text(("white", f"{now:%Y-%m-%d %H:%M:%S} UTC"))),
    ])
    world = urwid.Text(parse_colours(draw_map_frame(station, job, list(state.vessels.values()), now)),
                       align='center', wrap='clip')
    body = urwid.Columns([
        ('weight', 1, urwid.AttrMap(urwid.LineBox(station_panel(app, now), title="Station"), 'border')),
        ('weight', 3, urwid.AttrMap(urwid.LineBox(world, title="Map"), 'border')),
    ], dividechars=1)
    widgets = [header, body]

    width = max(1, cols - 2)
    ui = app.settings.ui
    session = state.waterfall
    if app.show_spectrum and session is not None and session.latest() is not None:
        lines = spectrum_lines(session.latest()[1], width, SPECTRUM_ROWS, ui.db_min, ui.db_max,
                               app.settings.waterfall_zoom)
        widgets.append(urwid.AttrMap(urwid.LineBox(
            urwid.Text(("green", "\n".join(lines)), wrap='clip'),
            title=f"Spectrum {session.observation_id}"), 'border'))
    if app.show_waterfall and session is not None:
        lines = waterfall_lines(session.rows, width, WATERFALL_ROWS, ui.db_min, ui.db_max, app.settings.waterfall_zoom)
        widgets.append(urwid.AttrMap(urwid.LineBox(
            urwid.Text(("cyan", "\n".join(lines) or " "), wrap='clip'),
            title=f"Waterfall {session.observation_id}"), 'border'))
    if app.show_log:
        widgets.append(urwid.AttrMap(urwid.LineBox(
            urwid.Text(log_lines(state.log, LOG_ROWS), wrap='clip'), title="Log"), 'border'))

    widgets.append(urwid.Text(("dark_gray", "tab/shift tab station  l log  s spectrum  w waterfall  q quit"),
                              wrap='clip'))
    return urwid.Pile(widgets)


def fit(canvas, rows):
    canvas = urwid.CompositeCanvas(canvas)
    if canvas.rows() > rows:
        canvas.trim_end(canvas.rows() - rows)
    elif canvas.rows() < rows:
        canvas.pad_trim_top_bottom(0, rows - canvas.rows())
    return canvas


class Renderer:
    """Draws the dashboard straight onto a raw terminal screen."""

    def __init__(self, screen=None):
        self.screen = screen or raw.Screen()
        self.screen.register_palette(palette)
        self.size = None

    def start(self):
        self.screen.start()

    def stop(self):
        self.screen.stop()

    def resize(self):
        self.size = None

    def draw(self, app):
        if self.size is None:
            self.size = self.screen.get_cols_rows()
        cols, rows = self.size
        canvas = build(app, cols).render((cols,))
        self.screen.draw_screen(self.size, fit(canvas, rows))
