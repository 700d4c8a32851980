"""Tests for init_logging."""

from __future__ import annotations

import logging

import pytest

from supabridge.utils import init_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_init_logging_installs_single_handler(root_logger):
    logger = init_logging("debug", service_name="supabridge.tests")

    assert logger.name == "supabridge.tests"
    assert len(root_logger.handlers) == 1
    assert root_logger.level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING


def test_unknown_level_falls_back_to_info(root_logger):
    init_logging("verbose")

    assert root_logger.level == logging.INFO
