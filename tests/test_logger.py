import logging

import pytest

from satnogs_monitor.channel import Channel
from satnogs_monitor.events import Log
from satnogs_monitor.logger import ChannelHandler, install, level_for, uninstall


@pytest.fixture
def log():
    logger = logging.getLogger("satnogs_monitor.test")
    yield logger
    uninstall()


def test_records_become_log_events(log):
    channel = Channel()
    install(channel, 2)
    log.info("station %d online", 5)
    event = channel.recv(timeout=0)
    assert isinstance(event, Log)
    assert event.level == logging.INFO
    assert event.message == "satnogs_monitor.test: station 5 online"


def test_verbosity_levels():
    assert level_for(0) == logging.WARNING
    assert level_for(1) == logging.INFO
    assert level_for(2) == logging.DEBUG
    assert level_for(5) == logging.DEBUG


def test_level_filters(log):
    channel = Channel()
    install(channel, 0)
    log.info("hidden")
    log.warning("shown")
    assert channel.qsize() == 1


def test_full_or_closed_channel_never_blocks():
    channel = Channel(1)
    handler = ChannelHandler(channel)
    logger = logging.getLogger("satnogs_monitor.test.full")
    logger.propagate = False
    logger.addHandler(handler)
    try:
        logger.warning("one")
        logger.warning("two")
        channel.close()
        logger.warning("three")
    finally:
        logger.removeHandler(handler)
        logger.propagate = True
    assert handler.dropped == 2
    assert channel.recv().message == "one"


def test_install_replaces_previous_handler(log):
    first, second = Channel(), Channel()
    install(first)
    install(second)
    log.warning("where")
    assert first.qsize() == 0
    assert second.qsize() == 1
