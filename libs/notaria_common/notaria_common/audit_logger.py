import json
import logging
import sys
from datetime import UTC, datetime

AUDIT_FIELDS = (
    "operation_id",
    "tenant_id",
    "alert_id",
    "alert_kind",
    "severity",
    "risk_level",
    "score",
    "reviewer_id",
    "decision",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(UTC).isoformat(),
            "level": record.levelname.lower(),
            "service": getattr(record, "service", "unknown"),
            "message": record.getMessage(),
            "logger": record.name,
        }
        for field in AUDIT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        return json.dumps(payload, ensure_ascii=False, default=str)


def get_audit_logger(service: str) -> logging.LoggerAdapter:
    base_logger = logging.getLogger("audit")
    base_logger.setLevel(logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    base_logger.handlers = [handler]
    base_logger.propagate = False

    class BoundAdapter(logging.LoggerAdapter):
        def process(self, msg, kwargs):
            kwargs.setdefault("extra", {}).update(self.extra)
            return msg, kwargs

    return BoundAdapter(base_logger, {"service": service})
