from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from roster_sync.application.date_column import DateColumnResolver
from roster_sync.core.metrics import metrics_registry
from roster_sync.domain.config import DateSettings
from tests.fakes import fixed_clock


@pytest.fixture(autouse=True)
def _reset_metrics() -> None:
    metrics_registry.reset()


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in list(root_logger.handlers):
        if handler not in handlers:
            root_logger.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root_logger.handlers:
            root_logger.addHandler(handler)
    root_logger.setLevel(level)


@pytest.fixture
def date_resolver() -> DateColumnResolver:
    return DateColumnResolver(DateSettings(date_format="%d-%b-%Y", timezone="UTC"), "Roster", clock=fixed_clock)
