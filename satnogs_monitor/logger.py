import logging
from datetime import datetime, timezone

from .events import Log

LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]

_installed = None


def level_for(verbosity):
    return LEVELS[max(0, min(verbosity, len(LEVELS) - 1))]


class ChannelHandler(logging.Handler):
    """
    Posts every record onto the event channel as a Log event.

    Records that don't fit (channel full or already closed) are dropped: the
    consumer loop logs too, and it must never wait on its own channel.
    """
    def __init__(self, channel, level=logging.NOTSET):
        super().__init__(level)
        self.channel = channel
        self.dropped = 0

    def emit(self, record):
        try:
            message = self.format(record)
        except Exception:
            self.handleError(record)
            return
        created = datetime.fromtimestamp(record.created, timezone.utc)
        if not self.channel.try_send(Log(record.levelno, message, created)):
            self.dropped += 1


def install(channel, verbosity=0):
    global _installed
    root = logging.getLogger()
    if _installed is not None:
        root.removeHandler(_installed)
    handler = ChannelHandler(channel)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(level_for(verbosity))
    # requests/urllib3 chatter would flood the log pane
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("watchdog").setLevel(logging.WARNING)
    _installed = handler
    return handler


def uninstall():
    global _installed
    if _installed is not None:
        logging.getLogger().removeHandler(_installed)
        _installed = None
