from __future__ import annotations

import pytest

from audit.log import AuditAction, AuditLog
from errors import ValidationError
from store.duckdb import DuckDBParcelStore

DAY_S = 24 * 60 * 60


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_record_and_query():
    audit = AuditLog(DuckDBParcelStore(":memory:"))
    audit.record(AuditAction.ZONING_UPDATE_REQUEST, "req", "alice")
    audit.record(AuditAction.ZONING_UPDATE_SUCCESS, "ok", "alice")
    audit.record(AuditAction.ZONING_UPDATE_REQUEST, "req", None)

    entries = audit.all()
    assert [e.action for e in entries] == [
        "ZONING_UPDATE_REQUEST",
        "ZONING_UPDATE_SUCCESS",
        "ZONING_UPDATE_REQUEST",
    ]
    assert entries[-1].actor == "anonymous"
    assert [e.details for e in audit.by_actor("alice")] == ["req", "ok"]
    assert len(audit.by_action("ZONING_UPDATE_REQUEST")) == 2
    assert audit.by_action(AuditAction.ZONING_UPDATE_FAILURE) == []

    payload = entries[0].to_api()
    assert payload["username"] == "alice"
    assert payload["timestamp"].endswith("+00:00")


def test_blank_filters_are_rejected():
    audit = AuditLog(DuckDBParcelStore(":memory:"))
    with pytest.raises(ValidationError):
        audit.by_actor("  ")
    with pytest.raises(ValidationError):
        audit.by_action("")


def test_keeps_only_newest_entries():
    audit = AuditLog(DuckDBParcelStore(":memory:"), max_entries=3)
    for i in range(5):
        audit.record(AuditAction.ZONING_UPDATE_REQUEST, str(i), "bob")
    assert [e.details for e in audit.all()] == ["2", "3", "4"]


def test_drops_entries_past_retention():
    clock = FakeClock()
    audit = AuditLog(DuckDBParcelStore(":memory:"), retention_days=30, clock=clock)
    audit.record(AuditAction.ZONING_UPDATE_REQUEST, "old", "bob")
    clock.now += 29 * DAY_S
    audit.record(AuditAction.ZONING_UPDATE_REQUEST, "recent", "bob")
    assert len(audit.all()) == 2

    clock.now += 2 * DAY_S
    audit.record(AuditAction.ZONING_UPDATE_REQUEST, "new", "bob")
    assert [e.details for e in audit.all()] == ["recent", "new"]


def test_record_is_best_effort_when_storage_fails():
    store = DuckDBParcelStore(":memory:")
    audit = AuditLog(store)
    store.close()
    audit.record(AuditAction.ZONING_UPDATE_FAILURE, "lost", "carol")
