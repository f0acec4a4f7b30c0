from __future__ import annotations

import json
import logging

import pytest

from galadriel.services.log import JsonFormatter, TextFormatter, setup_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("galadriel.federated_syncer", logging.ERROR, __file__, 1, "failed to verify bundle", (), None)
    record.__dict__.update(extra)
    return record


def test_json_formatter_merges_extra_fields() -> None:
    line = JsonFormatter().format(_record(trust_domain="peer.test", code=3))

    payload = json.loads(line)
    assert payload["level"] == "ERROR"
    assert payload["logger"] == "galadriel.federated_syncer"
    assert payload["msg"] == "failed to verify bundle"
    assert payload["trust_domain"] == "peer.test"
    assert payload["code"] == "3"


def test_text_formatter_appends_sorted_pairs() -> None:
    line = TextFormatter().format(_record(trust_domain="peer.test", code=3))

    assert "ERROR galadriel.federated_syncer: failed to verify bundle" in line
    assert line.endswith("code=3 trust_domain=peer.test")


@pytest.fixture()
def galadriel_logger():
    logger = logging.getLogger("galadriel")
    saved = (logger.level, list(logger.handlers), logger.propagate)
    yield logger
    logger.setLevel(saved[0])
    logger.handlers[:] = saved[1]
    logger.propagate = saved[2]


def test_setup_logging(galadriel_logger) -> None:
    logger = setup_logging("debug", "json")

    assert logger is galadriel_logger
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, JsonFormatter)

    setup_logging("bogus")
    assert logger.level == logging.INFO
    assert isinstance(logger.handlers[0].formatter, TextFormatter)
