"""Unit tests for per-category logging setup."""

import logging

from client_tracker.config import Settings
from client_tracker.infrastructure.logging.log_config import setup_logging


def test_sync_loggers_follow_their_own_level():
    setup_logging(Settings(log_level="WARNING", log_level_sync="DEBUG", log_level_http="ERROR"))

    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("SyncCoordinator").level == logging.DEBUG
    assert logging.getLogger("client_tracker.application.services.offline_queue").level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.ERROR


def test_unknown_level_name_falls_back_to_info():
    setup_logging(Settings(log_level="LOUD", log_level_sync="chatty"))

    assert logging.getLogger().level == logging.INFO
    assert logging.getLogger("SyncCoordinator").level == logging.INFO


def test_repeated_setup_installs_a_single_handler():
    setup_logging(Settings())
    handlers = list(logging.getLogger().handlers)

    setup_logging(Settings())

    assert logging.getLogger().handlers == handlers
