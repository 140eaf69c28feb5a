from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from errors import ValidationError, ZoningAppError
from store.duckdb import DuckDBParcelStore
from store.types import ZoningTransaction

from audit.config import audit_max_entries, audit_retention_days
from audit.sql import (
    CREATE_AUDIT_SEQUENCE_SQL,
    CREATE_AUDIT_TABLE_SQL,
    INSERT_AUDIT_SQL,
    PRUNE_AUDIT_BY_AGE_SQL,
    PRUNE_AUDIT_BY_COUNT_SQL,
    SELECT_AUDIT_TEMPLATE,
)

logger = logging.getLogger(__name__)

DEFAULT_ACTOR = "anonymous"

_DAY_MS = 24 * 60 * 60 * 1000


class AuditAction(str, Enum):
    ZONING_UPDATE_REQUEST = "ZONING_UPDATE_REQUEST"
    ZONING_UPDATE_SUCCESS = "ZONING_UPDATE_SUCCESS"
    ZONING_UPDATE_PARTIAL = "ZONING_UPDATE_PARTIAL"
    ZONING_UPDATE_FAILURE = "ZONING_UPDATE_FAILURE"


@dataclass(frozen=True)
class AuditEntry:
    id: int
    ts_ms: int
    action: str
    details: str | None
    actor: str

    def to_api(self) -> dict[str, Any]:
        ts = datetime.fromtimestamp(self.ts_ms / 1000.0, tz=timezone.utc)
        return {
            "id": self.id,
            "timestamp": ts.isoformat(),
            "action": self.action,
            "details": self.details,
            "username": self.actor,
        }


def normalize_actor(actor: str | None) -> str:
    a = (actor or "").strip()
    return a or DEFAULT_ACTOR


class AuditLog:
    """
    Audit trail kept in the parcel store's DuckDB database.

    `record` is best-effort: storage problems are logged, never raised, so auditing
    can't fail the operation being audited. `record_in` writes inside a caller's
    transaction and therefore shares its fate.
    """

    def __init__(
        self,
        store: DuckDBParcelStore,
        *,
        max_entries: int | None = None,
        retention_days: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.max_entries = max_entries if max_entries is not None else audit_max_entries()
        self.retention_days = retention_days if retention_days is not None else audit_retention_days()
        self._clock = clock
        self.ensure_schema()

    def ensure_schema(self) -> None:
        with self.store.transaction() as tx:
            tx.execute(CREATE_AUDIT_SEQUENCE_SQL)
            tx.execute(CREATE_AUDIT_TABLE_SQL)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def record(self, action: AuditAction | str, details: str, actor: str | None = None) -> None:
        try:
            with self.store.transaction() as tx:
                self.record_in(tx, action, details, actor)
        except ZoningAppError as e:
            logger.error("Failed to record audit entry %s: %s", _action_value(action), e)
            return
        self.prune()

    def record_in(
        self,
        tx: ZoningTransaction,
        action: AuditAction | str,
        details: str,
        actor: str | None = None,
    ) -> None:
        tx.execute(
            INSERT_AUDIT_SQL,
            [self._now_ms(), _action_value(action), details, normalize_actor(actor)],
        )

    def prune(self) -> None:
        """Drop entries past retention, then all but the newest `max_entries`. Best-effort."""
        cutoff = self._now_ms() - int(self.retention_days * _DAY_MS)
        try:
            with self.store.transaction() as tx:
                tx.execute(PRUNE_AUDIT_BY_AGE_SQL, [cutoff])
                tx.execute(PRUNE_AUDIT_BY_COUNT_SQL, [int(self.max_entries)])
        except ZoningAppError as e:
            logger.warning("Audit log pruning failed: %s", e)

    # -- queries -------------------------------------------------------------

    def all(self) -> list[AuditEntry]:
        return self._select("", [])

    def by_actor(self, actor: str) -> list[AuditEntry]:
        if not (actor or "").strip():
            raise ValidationError("Username cannot be empty")
        return self._select("WHERE actor = ?", [actor.strip()])

    def by_action(self, action: AuditAction | str) -> list[AuditEntry]:
        value = _action_value(action).strip()
        if not value:
            raise ValidationError("Action cannot be empty")
        return self._select("WHERE action = ?", [value])

    def _select(self, where_sql: str, params: list[Any]) -> list[AuditEntry]:
        rows = self.store.query(SELECT_AUDIT_TEMPLATE.format(where_sql=where_sql), params)
        return [
            AuditEntry(id=int(r[0]), ts_ms=int(r[1]), action=str(r[2]), details=r[3], actor=str(r[4]))
            for r in rows
        ]


def _action_value(action: AuditAction | str) -> str:
    return action.value if isinstance(action, AuditAction) else str(action)
