import socket

from .errors import RotCtldError, TransportError

DEFAULT_PORT = 4533


def parse_address(address):
    """'host:port' or 'host' (default rotctld port) to a (host, port) tuple."""
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, DEFAULT_PORT
    try:
        return host.strip("[]"), int(port)
    except ValueError:
        raise ValueError(f"invalid rotctld address {address!r}")


class RotCtldClient:
    """Reads the antenna position from a hamlib rotctld daemon."""

    def __init__(self, address, timeout=1.0):
        self.host, self.port = parse_address(address) if isinstance(address, str) else address
        self.timeout = timeout
        self.sock = None
        self.reader = None

    def connect(self):
        if self.sock:
            return
        try:
            self.sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        except OSError as e:
            raise TransportError(f"cannot connect to rotctld at {self.host}:{self.port}: {e}")
        self.reader = self.sock.makefile("r", encoding="ascii", errors="replace", newline="\n")

    def close(self):
        try:
            if self.reader:
                self.reader.close()
            if self.sock:
                self.sock.close()
        finally:
            self.sock = None
            self.reader = None

    def _readline(self):
        try:
            line = self.reader.readline()
        except OSError as e:
            raise TransportError(f"rotctld read failed: {e}")
        if not line:
            raise RotCtldError("rotctld closed the connection")
        line = line.strip()
        if line.startswith("RPRT"):
            raise RotCtldError(f"rotctld error reply: {line}")
        return line

    def position(self):
        """Current (azimuth, elevation) in degrees."""
        self.connect()
        try:
            self.sock.sendall(b"p\n")
        except OSError as e:
            raise TransportError(f"rotctld write failed: {e}")
        az, el = self._readline(), self._readline()
        try:
            return float(az), float(el)
        except ValueError:
            raise RotCtldError(f"unexpected rotctld reply {az!r} {el!r}")

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *exc):
        self.close()
