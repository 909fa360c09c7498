import json
import logging

import pytest
import structlog

from notaria_common.audit_logger import get_audit_logger
from notaria_common.logging import setup_logging


def test_audit_logger_emits_json(capsys):
    """Audit lines are JSON with the service name and the known audit fields"""
    audit = get_audit_logger("risk-engine")
    audit.info(
        "alert_reviewed",
        extra={"alert_id": "a-1", "reviewer_id": "u-10", "decision": "CONFIRMED"},
    )

    entry = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert entry["service"] == "risk-engine", "Service name should match"
    assert entry["message"] == "alert_reviewed"
    assert entry["level"] == "info"
    assert entry["alert_id"] == "a-1"
    assert entry["reviewer_id"] == "u-10"
    assert "ts" in entry, "Entry should have timestamp"


def test_audit_logger_skips_missing_fields(capsys):
    audit = get_audit_logger("risk-engine")
    audit.info("operation_evaluated", extra={"operation_id": "op-1", "score": 0})

    entry = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert entry["operation_id"] == "op-1"
    assert entry["score"] == 0
    assert "reviewer_id" not in entry


def test_audit_logger_does_not_propagate():
    get_audit_logger("risk-engine")
    logger = logging.getLogger("audit")
    assert logger.propagate is False
    assert len(logger.handlers) == 1


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def test_setup_logging_configures_structlog(restore_logging):
    setup_logging("risk-engine", "debug")

    assert logging.getLogger().level == logging.DEBUG
    assert structlog.contextvars.get_contextvars()["service"] == "risk-engine"
    assert structlog.is_configured()
