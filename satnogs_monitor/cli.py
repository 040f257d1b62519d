import argparse
import sys

from rich.console import Console

from . import tle
from .app import App
from .channel import Channel
from .errors import MonitorError, SettingsError
from .logger import install, uninstall
from .network import Connection
from .producers import (
    Supervisor, block_resize_signal, input_reader, resize_listener, rotator_poller,
    sysinfo_sampler, tick_timer, waterfall_producer,
)
from .rotctld import RotCtldClient
from .satnogs import SatnogsClient
from .settings import Settings
from .state import State
from .ui import Renderer
from .waterfall import WaterfallWatcher

console = Console()

MAX_TRACKED = 8


def positive_int(value):
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"{value} is not >= 1")
    return number


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="satnogs-monitor", description="SatNOGS ground station monitor")
    parser.add_argument("-a", "--api", help="SatNOGS network api endpoint")
    parser.add_argument("-s", "--station", type=int, nargs="+", default=[], metavar="ID",
                        help="SatNOGS network id of a station to monitor")
    parser.add_argument("-l", "--local", type=int, nargs="+", default=[], metavar="ID",
                        help="station running on this machine (shows its system info)")
    parser.add_argument("-c", "--config", help="config file (TOML)")
    parser.add_argument("-o", "--orbits", type=positive_int, help="number of orbits in the ground track")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="more log output, repeatable")
    parser.add_argument("--data-path", help="directory satnogs-client writes waterfalls to")
    parser.add_argument("--rotctld-address", metavar="HOST:PORT", help="rotctld to read the antenna position from")
    parser.add_argument("--rotctld-interval", type=float, help="seconds between rotator polls")
    parser.add_argument("--db-min", type=float, help="lower bound of the spectrum plot")
    parser.add_argument("--db-max", type=float, help="upper bound of the spectrum plot")
    parser.add_argument("--spectrum", action="store_true", default=None, help="show the spectrum plot")
    parser.add_argument("--waterfall", action="store_true", default=None, help="show the waterfall")
    parser.add_argument("--waterfall-zoom", type=float, help="waterfall zoom, 1.0 to 10.0")
    parser.add_argument("--job-update-interval", type=positive_int, help="seconds between job refreshes")
    parser.add_argument("--tle-file", help="TLE file with extra satellites to show on the map")
    parser.add_argument("--track", nargs="+", default=[], metavar="NAME",
                        help="satellites from the TLE file to show (substring match)")
    return parser.parse_args(argv)


def merge_args(args):
    """Settings from the config file and environment with the command line on top."""
    data = {}
    if args.station or args.local:
        # stations given on the command line add to the configured ones
        configured = Settings.load(args.config)
        stations = {s.satnogs_id: s.model_dump() for s in configured.stations}
        for station_id in args.station:
            stations.setdefault(station_id, {"satnogs_id": station_id, "local": False})
        for station_id in args.local:
            stations.setdefault(station_id, {"satnogs_id": station_id, "local": False})["local"] = True
        data["stations"] = list(stations.values())

    simple = {
        "api_endpoint": args.api,
        "data_path": args.data_path,
        "rotctld_address": args.rotctld_address,
        "rotctld_interval": args.rotctld_interval,
        "waterfall_zoom": args.waterfall_zoom,
        "job_update_interval": args.job_update_interval,
        "tle_file": args.tle_file,
    }
    data.update({k: v for k, v in simple.items() if v is not None})
    if args.verbose:
        data["log_level"] = args.verbose
    if args.track:
        data["track"] = args.track

    ui = {
        "ground_track_num": args.orbits,
        "db_min": args.db_min,
        "db_max": args.db_max,
        "spectrum_plot": args.spectrum,
        "waterfall": args.waterfall,
    }
    ui = {k: v for k, v in ui.items() if v is not None}
    if ui:
        data["ui"] = ui
    return Settings.load(args.config, **data)


def load_state(settings, client):
    state = State()
    with console.status("[cyan]Fetching station info[/cyan]"):
        for station in settings.stations:
            info = client.station_info(station.satnogs_id)
            state.add_station(info, station.local)
            console.print(f"[green]{info.id} - {info.name}[/green] ({info.status.value})")

    if settings.tle_file:
        triples = tle.load_tle_file(settings.tle_file)
        if settings.track:
            triples = tle.select(triples, settings.track)
        location = state.active().location
        for name, line1, line2 in triples[:MAX_TRACKED]:
            state.add_vessel(tle.norad_id(line1), name, line1, line2, location)
    return state


def run(settings, watch_resize=True):
    client = SatnogsClient(settings.api_endpoint, settings.api_key)
    state = load_state(settings, client)

    channel = Channel(100)
    install(channel, settings.log_level)
    supervisor = Supervisor(channel)
    network = Connection(channel, client)
    supervisor.adopt(network.start())
    if watch_resize:
        supervisor.spawn("resize", resize_listener)
    supervisor.spawn("tick", tick_timer)

    if settings.local_station_ids:
        supervisor.spawn("sysinfo", sysinfo_sampler, settings.local_station_ids)
    watcher = None
    if settings.data_path:
        watcher = WaterfallWatcher(settings.data_path, channel)
        supervisor.spawn("waterfall", waterfall_producer, watcher)
    if settings.rotctld_address:
        supervisor.spawn("rotator", rotator_poller, RotCtldClient(settings.rotctld_address),
                         settings.rotctld_interval)

    renderer = Renderer()
    app = App(settings, state, channel, network, renderer)
    renderer.start()
    try:
        supervisor.spawn("input", input_reader, renderer.screen)
        app.run()
    finally:
        renderer.stop()
        channel.close()
        network.stop()
        if watcher is not None:
            watcher.stop()
        uninstall()


def main(argv=None):
    args = parse_args(argv)
    # must happen before any thread exists so every thread inherits the mask
    watch_resize = block_resize_signal()

    try:
        settings = merge_args(args)
    except SettingsError as e:
        console.print(f"[red]{e}[/red]")
        return 1
    if not settings.stations:
        console.print("[red]No SatNOGS network station configured, use -s or -l[/red]")
        return 1

    try:
        run(settings, watch_resize)
    except (MonitorError, OSError) as e:
        console.print(f"[red]{e}[/red]")
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
