class MonitorError(Exception):
    pass


class TransportError(MonitorError):
    """Network, socket or file I/O failure."""


class ProtocolError(MonitorError):
    """Malformed data received from a collaborator."""


class NetworkError(TransportError):
    pass


class RotCtldError(ProtocolError):
    pass


class WaterfallHeaderError(ProtocolError):
    pass


class SettingsError(MonitorError):
    pass
