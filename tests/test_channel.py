import queue
import threading
import time

import pytest

from satnogs_monitor.channel import Channel, ChannelClosed


def test_fifo_order():
    channel = Channel(10)
    for i in range(5):
        channel.send(i)
    assert [channel.recv() for _ in range(5)] == [0, 1, 2, 3, 4]


def test_recv_timeout_raises_empty():
    channel = Channel(10)
    started = time.monotonic()
    with pytest.raises(queue.Empty):
        channel.recv(timeout=0.05)
    assert time.monotonic() - started >= 0.04


def test_try_send_refuses_when_full():
    channel = Channel(2)
    assert channel.try_send(1)
    assert channel.try_send(2)
    assert not channel.try_send(3)
    assert channel.qsize() == 2


def test_send_blocks_until_space():
    channel = Channel(1)
    channel.send("first")
    done = threading.Event()

    def producer():
        channel.send("second")
        done.set()

    threading.Thread(target=producer, daemon=True).start()
    assert not done.wait(0.1)
    assert channel.recv() == "first"
    assert done.wait(1)
    assert channel.recv() == "second"


def test_send_timeout_when_full():
    channel = Channel(1)
    channel.send(1)
    with pytest.raises(queue.Full):
        channel.send(2, timeout=0.01)


def test_close_fails_senders_and_drains_receiver():
    channel = Channel(10)
    channel.send("left over")
    channel.close()
    with pytest.raises(ChannelClosed):
        channel.send("late")
    assert not channel.try_send("late")
    assert channel.recv() == "left over"
    with pytest.raises(ChannelClosed):
        channel.recv()


def test_close_wakes_blocked_sender():
    channel = Channel(1)
    channel.send(1)
    errors = []

    def producer():
        try:
            channel.send(2)
        except ChannelClosed as e:
            errors.append(e)

    thread = threading.Thread(target=producer, daemon=True)
    thread.start()
    time.sleep(0.05)
    channel.close()
    thread.join(1)
    assert len(errors) == 1
