"""
Alert storage adapters.

The engine only needs create/get/update and the pending-alerts query; no
multi-row transaction is ever required.
"""

from abc import ABC, abstractmethod
from datetime import UTC

import structlog
from sqlalchemy import JSON, Column, DateTime, String, Text, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .exceptions import AlertNotFoundError
from .schemas import Alert, AlertKind, AlertSeverity, AlertState

log = structlog.get_logger(__name__)

Base = declarative_base()


def pending_sort_key(alert: Alert):
    return (alert.severity.rank, alert.created_at)


class AlertStore(ABC):
    @abstractmethod
    def create(self, alert: Alert) -> Alert: ...

    @abstractmethod
    def get(self, alert_id: str) -> Alert: ...

    @abstractmethod
    def update(self, alert: Alert) -> Alert: ...

    @abstractmethod
    def list_by_operation(self, operation_id: str) -> list[Alert]: ...

    @abstractmethod
    def list_pending(self, tenant_id: str) -> list[Alert]:
        """Pending alerts, most severe first, then newest first."""


class InMemoryAlertStore(AlertStore):
    def __init__(self):
        self._alerts: dict[str, Alert] = {}

    def create(self, alert: Alert) -> Alert:
        self._alerts[alert.id] = alert
        return alert

    def get(self, alert_id: str) -> Alert:
        try:
            return self._alerts[alert_id]
        except KeyError:
            raise AlertNotFoundError(alert_id) from None

    def update(self, alert: Alert) -> Alert:
        if alert.id not in self._alerts:
            raise AlertNotFoundError(alert.id)
        self._alerts[alert.id] = alert
        return alert

    def list_by_operation(self, operation_id: str) -> list[Alert]:
        return [a for a in self._alerts.values() if a.operation_id == operation_id]

    def list_pending(self, tenant_id: str) -> list[Alert]:
        pending = [
            a
            for a in self._alerts.values()
            if a.tenant_id == tenant_id and a.state == AlertState.PENDING
        ]
        return sorted(pending, key=pending_sort_key, reverse=True)


class AlertRecord(Base):
    """SQLAlchemy model for compliance alerts"""

    __tablename__ = "compliance_alerts"

    id = Column(String(36), primary_key=True)
    kind = Column(String(32), nullable=False)
    severity = Column(String(16), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    details = Column(JSON, nullable=False, default=dict)
    state = Column(String(32), nullable=False, index=True)
    operation_id = Column(String(64), nullable=False, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    reviewed_by = Column(String(64))
    reviewed_at = Column(DateTime(timezone=True))
    review_comment = Column(Text)


def _to_record(alert: Alert, record: AlertRecord | None = None) -> AlertRecord:
    record = record or AlertRecord(id=alert.id)
    record.kind = alert.kind.value
    record.severity = alert.severity.value
    record.title = alert.title
    record.description = alert.description
    record.details = alert.model_dump(mode="json")["details"]
    record.state = alert.state.value
    record.operation_id = alert.operation_id
    record.tenant_id = alert.tenant_id
    record.created_at = alert.created_at
    record.reviewed_by = alert.reviewed_by
    record.reviewed_at = alert.reviewed_at
    record.review_comment = alert.review_comment
    return record


def _aware(value):
    # SQLite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _to_alert(record: AlertRecord) -> Alert:
    return Alert(
        id=record.id,
        kind=AlertKind(record.kind),
        severity=AlertSeverity(record.severity),
        title=record.title,
        description=record.description,
        details=record.details or {},
        state=AlertState(record.state),
        operation_id=record.operation_id,
        tenant_id=record.tenant_id,
        created_at=_aware(record.created_at),
        reviewed_by=record.reviewed_by,
        reviewed_at=_aware(record.reviewed_at),
        review_comment=record.review_comment,
    )


class SqlAlertStore(AlertStore):
    def __init__(self, database_url: str, create_schema: bool = True, **engine_kwargs):
        if database_url.startswith("sqlite"):
            engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
            if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
                # one shared connection, otherwise every session sees an empty database
                engine_kwargs.setdefault("poolclass", StaticPool)
        self.engine = create_engine(database_url, **engine_kwargs)
        self.Session = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        if create_schema:
            Base.metadata.create_all(self.engine)

    def create(self, alert: Alert) -> Alert:
        with self.Session() as db:
            db.add(_to_record(alert))
            db.commit()
        log.debug("Alert row inserted", alert_id=alert.id, kind=alert.kind.value)
        return alert

    def get(self, alert_id: str) -> Alert:
        with self.Session() as db:
            record = db.get(AlertRecord, alert_id)
            if record is None:
                raise AlertNotFoundError(alert_id)
            return _to_alert(record)

    def update(self, alert: Alert) -> Alert:
        with self.Session() as db:
            record = db.get(AlertRecord, alert.id)
            if record is None:
                raise AlertNotFoundError(alert.id)
            _to_record(alert, record)
            db.commit()
        return alert

    def list_by_operation(self, operation_id: str) -> list[Alert]:
        with self.Session() as db:
            rows = db.scalars(
                select(AlertRecord).where(AlertRecord.operation_id == operation_id)
            ).all()
            return [_to_alert(r) for r in rows]

    def list_pending(self, tenant_id: str) -> list[Alert]:
        # severity is stored as text, so order by rank in Python
        with self.Session() as db:
            rows = db.scalars(
                select(AlertRecord).where(
                    AlertRecord.tenant_id == tenant_id,
                    AlertRecord.state == AlertState.PENDING.value,
                )
            ).all()
            alerts = [_to_alert(r) for r in rows]
        return sorted(alerts, key=pending_sort_key, reverse=True)
