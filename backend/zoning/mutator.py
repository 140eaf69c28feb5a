from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from audit.log import AuditAction, AuditLog, normalize_actor
from errors import NotFoundError, PartialMatchError, ValidationError, ZoningAppError
from store.types import ParcelStore

logger = logging.getLogger(__name__)

MAX_ZONING_VALUE_LEN = 50


@dataclass(frozen=True)
class UpdateResult:
    requested_count: int
    updated_count: int


def validate_request(parcel_ids: Iterable[Any] | None, zoning_type: str | None, zoning_sub_type: str | None) -> list[int]:
    """
    Check an update request before anything is touched. Returns the distinct ids.
    """
    if parcel_ids is None:
        raise ValidationError("Parcel IDs list cannot be empty")
    ids: list[int] = []
    seen: set[int] = set()
    for raw in parcel_ids:
        if isinstance(raw, bool):
            raise ValidationError(f"Invalid parcel id: {raw!r}")
        try:
            pid = int(raw)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid parcel id: {raw!r}") from e
        if pid not in seen:
            seen.add(pid)
            ids.append(pid)
    if not ids:
        raise ValidationError("Parcel IDs list cannot be empty")
    _check_value("Zoning type", zoning_type)
    _check_value("Zoning sub-type", zoning_sub_type)
    return ids


def _check_value(label: str, value: str | None) -> None:
    if value is None or not str(value).strip():
        raise ValidationError(f"{label} cannot be empty")
    if len(value) > MAX_ZONING_VALUE_LEN:
        raise ValidationError(f"{label} must be between 1 and {MAX_ZONING_VALUE_LEN} characters")


class ZoningMutator:
    """
    Bulk zoning updates.

    The row updates and the SUCCESS/PARTIAL audit entry share one transaction. When
    only some ids exist, the matched rows are committed first and PartialMatchError
    is raised afterwards.
    """

    def __init__(
        self,
        store: ParcelStore,
        audit: AuditLog | None = None,
        *,
        on_commit: Iterable[Callable[[], None]] = (),
    ):
        self.store = store
        self.audit = audit
        self._on_commit: list[Callable[[], None]] = list(on_commit)

    def add_commit_hook(self, hook: Callable[[], None]) -> None:
        self._on_commit.append(hook)

    def apply(
        self,
        parcel_ids: Iterable[Any] | None,
        zoning_type: str | None,
        zoning_sub_type: str | None,
        actor: str | None = None,
    ) -> UpdateResult:
        ids = validate_request(parcel_ids, zoning_type, zoning_sub_type)
        zoning_type = str(zoning_type).strip()
        zoning_sub_type = str(zoning_sub_type).strip()
        actor = normalize_actor(actor)

        request = {"parcelIds": ids, "zoningType": zoning_type, "zoningSubType": zoning_sub_type}
        self._record(AuditAction.ZONING_UPDATE_REQUEST, request, actor)

        try:
            with self.store.transaction() as tx:
                before = tx.current_zoning(ids)
                if not before:
                    raise NotFoundError(f"No parcels found for ids {ids}")
                updated = tx.update_zoning(before.keys(), zoning_type, zoning_sub_type)
                missing = [i for i in ids if i not in before]
                details = {
                    **request,
                    "updatedCount": updated,
                    "missingIds": missing,
                    "before": {
                        str(pid): {"zoningType": typ, "zoningSubType": sub}
                        for pid, (typ, sub) in sorted(before.items())
                    },
                }
                action = AuditAction.ZONING_UPDATE_PARTIAL if missing else AuditAction.ZONING_UPDATE_SUCCESS
                if self.audit is not None:
                    self.audit.record_in(tx, action, _dumps(details), actor)
        except ZoningAppError as e:
            logger.warning("Zoning update by %s failed (%s): %s", actor, e.code, e.message)
            self._record(AuditAction.ZONING_UPDATE_FAILURE, {**request, "error": e.code}, actor)
            raise

        logger.info(
            "Zoning update by %s: %d/%d parcels set to %s / %s",
            actor,
            updated,
            len(ids),
            zoning_type,
            zoning_sub_type,
        )
        self._committed()

        if missing:
            raise PartialMatchError(
                f"Updated {updated} of {len(ids)} parcels; not found: {missing}",
                requested_count=len(ids),
                updated_count=updated,
            )
        return UpdateResult(requested_count=len(ids), updated_count=updated)

    def _record(self, action: AuditAction, details: dict[str, Any], actor: str) -> None:
        if self.audit is not None:
            self.audit.record(action, _dumps(details), actor)

    def _committed(self) -> None:
        for hook in self._on_commit:
            try:
                hook()
            except Exception:
                logger.exception("Zoning commit hook failed")
        if self.audit is not None:
            self.audit.prune()


def _dumps(details: dict[str, Any]) -> str:
    return json.dumps(details, ensure_ascii=False, sort_keys=True)
