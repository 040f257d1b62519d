import queue
import threading
import time
from collections import deque
from typing import Any, Optional


class ChannelClosed(Exception):
    pass


class Channel:
    """
    Bounded FIFO shared by many producer threads and one consumer.

    Senders block while the channel is full. Once closed, every pending and
    future send raises ChannelClosed; the receiver can still drain what is
    left before it sees ChannelClosed too.
    """
    def __init__(self, maxsize: int = 100):
        self.maxsize = maxsize
        self.buffer = deque()
        self.lock = threading.Lock()
        self.not_empty = threading.Condition(self.lock)
        self.not_full = threading.Condition(self.lock)
        self.closed = False

    def send(self, item: Any, timeout: Optional[float] = None):
        deadline = None if timeout is None else time.monotonic() + timeout
        with self.not_full:
            while True:
                if self.closed:
                    raise ChannelClosed()
                if len(self.buffer) < self.maxsize:
                    break
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    raise queue.Full()
                self.not_full.wait(remaining)
            self.buffer.append(item)
            self.not_empty.notify()

    def try_send(self, item: Any) -> bool:
        with self.lock:
            if self.closed or len(self.buffer) >= self.maxsize:
                return False
            self.buffer.append(item)
            self.not_empty.notify()
            return True

    def recv(self, timeout: Optional[float] = None) -> Any:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self.not_empty:
            while not self.buffer:
                if self.closed:
                    raise ChannelClosed()
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    raise queue.Empty()
                self.not_empty.wait(remaining)
            item = self.buffer.popleft()
            self.not_full.notify()
            return item

    def qsize(self) -> int:
        with self.lock:
            return len(self.buffer)

    def close(self):
        with self.lock:
            self.closed = True
            self.not_empty.notify_all()
            self.not_full.notify_all()
