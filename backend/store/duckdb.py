from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator

import duckdb

from errors import MalformedGeometry, PermissionDenied, StorageUnavailable, ZoningAppError
from geo.aoi import BBox
from geo.geometry import bounds, parse_geometry
from parcels.loaders import parse_records, select_in_bounds
from parcels.types import ATTRIBUTE_FIELDS, Parcel, ParcelRecord
from store.locks import ReadWriteLock
from store.sql import (
    COUNT_PARCELS_SQL,
    CREATE_PARCELS_TABLE_SQL,
    PARCEL_COLUMNS,
    SELECT_ALL_PARCELS_SQL,
    SELECT_BBOX_CANDIDATES_SQL,
    SELECT_PARCELS_BY_IDS_TEMPLATE,
    SELECT_ZONING_BY_IDS_TEMPLATE,
    UPDATE_ZONING_TEMPLATE,
    UPSERT_PARCEL_SQL,
    ZONING_STATISTICS_SQL,
    placeholders,
)

logger = logging.getLogger(__name__)


def classify_storage_error(e: Exception) -> ZoningAppError:
    """
    Map a DuckDB error to the app taxonomy: access problems vs. everything else.
    """
    if isinstance(e, duckdb.PermissionException):
        return PermissionDenied(f"Storage rejected the operation: {e}")
    if isinstance(e, duckdb.InvalidInputException) and "read-only" in str(e).lower():
        return PermissionDenied(f"Storage is read-only: {e}")
    return StorageUnavailable(f"Storage error: {e}")


class DuckDBTransaction:
    """
    One MVCC transaction on its own cursor. Created by `DuckDBParcelStore.transaction()`.
    """

    def __init__(self, cursor: duckdb.DuckDBPyConnection):
        self.cursor = cursor

    def current_zoning(self, ids: Iterable[int]) -> dict[int, tuple[str | None, str | None]]:
        id_list = _id_list(ids)
        if not id_list:
            return {}
        sql = SELECT_ZONING_BY_IDS_TEMPLATE.format(placeholders=placeholders(len(id_list)))
        rows = self.cursor.execute(sql, id_list).fetchall()
        return {int(pid): (typ, sub) for pid, typ, sub in rows}

    def update_zoning(self, ids: Iterable[int], zoning_type: str, zoning_sub_type: str) -> int:
        """
        Update exactly the ids that exist; return how many that was.
        """
        found = sorted(self.current_zoning(ids).keys())
        if not found:
            return 0
        sql = UPDATE_ZONING_TEMPLATE.format(placeholders=placeholders(len(found)))
        self.cursor.execute(sql, [zoning_type, zoning_sub_type, *found])
        return len(found)

    def execute(self, sql: str, params: list[Any] | None = None) -> None:
        if params:
            self.cursor.execute(sql, params)
        else:
            self.cursor.execute(sql)


class DuckDBParcelStore:
    """
    Parcel storage on DuckDB.

    Concurrency: every operation runs on its own cursor. Queries and zoning
    transactions hold the shared side of a per-instance reader/writer lock (DuckDB's
    MVCC isolates them); schema setup, bulk loads and close hold the exclusive side.
    """

    def __init__(
        self,
        path: str | Path = ":memory:",
        *,
        read_only: bool = False,
        threads: int | None = None,
    ):
        self.path = str(path)
        self.read_only = read_only
        if self.path != ":memory:":
            p = Path(self.path)
            if p.parent and str(p.parent) not in {".", ""}:
                p.parent.mkdir(parents=True, exist_ok=True)
        config: dict[str, Any] = {}
        if threads:
            config["threads"] = int(threads)
        try:
            self.conn = duckdb.connect(database=self.path, read_only=read_only, config=config)
        except duckdb.Error as e:
            raise classify_storage_error(e) from e
        self._rw = ReadWriteLock()
        if not read_only:
            self.ensure_schema()

    # -- lifecycle -----------------------------------------------------------

    def ensure_schema(self) -> None:
        with self._rw.exclusive():
            self.conn.execute(CREATE_PARCELS_TABLE_SQL)

    def close(self) -> None:
        with self._rw.exclusive():
            try:
                self.conn.close()
            except duckdb.Error:
                logger.exception("Failed to close parcel store at %s", self.path)

    def load_records(self, records: Iterable[ParcelRecord]) -> int:
        """
        Insert or replace parcels. Rows whose geometry cannot be parsed are still stored
        (with an unknown bbox) so the source data is not silently altered.
        """
        rows = [_record_to_row(r) for r in records]
        if not rows:
            return 0
        with self._rw.exclusive():
            try:
                self.conn.executemany(UPSERT_PARCEL_SQL, rows)
            except duckdb.Error as e:
                raise classify_storage_error(e) from e
        logger.info("Loaded %d parcels into %s", len(rows), self.path)
        return len(rows)

    # -- queries -------------------------------------------------------------

    def _cursor(self) -> duckdb.DuckDBPyConnection:
        try:
            return self.conn.cursor()
        except duckdb.Error as e:
            logger.error("Parcel store at %s is not usable: %s", self.path, e)
            raise classify_storage_error(e) from e

    @contextmanager
    def _reading(self) -> Iterator[duckdb.DuckDBPyConnection]:
        with self._rw.shared():
            cur = self._cursor()
            try:
                yield cur
            except duckdb.Error as e:
                logger.error("Parcel store query failed: %s", e)
                raise classify_storage_error(e) from e
            finally:
                cur.close()

    def query(self, sql: str, params: list[Any] | None = None) -> list[tuple]:
        """
        Run a read query on the store's connection.

        Collaborators sharing this database file (the audit log) read through here:
        DuckDB file locks rule out a second connection from another process.
        """
        with self._reading() as cur:
            if params:
                return cur.execute(sql, params).fetchall()
            return cur.execute(sql).fetchall()

    def count(self) -> int:
        with self._reading() as cur:
            row = cur.execute(COUNT_PARCELS_SQL).fetchone()
        return int(row[0] or 0) if row else 0

    def parcels_in_bounds(self, bbox: BBox) -> list[Parcel]:
        b = bbox.normalized()
        with self._reading() as cur:
            rows = cur.execute(
                SELECT_BBOX_CANDIDATES_SQL,
                [b.min_lon, b.max_lon, b.min_lat, b.max_lat],
            ).fetchall()
        return select_in_bounds((_row_to_record(r) for r in rows), b)

    def all_parcels(self) -> list[Parcel]:
        with self._reading() as cur:
            rows = cur.execute(SELECT_ALL_PARCELS_SQL).fetchall()
        return parse_records(_row_to_record(r) for r in rows)

    def get_parcels(self, ids: Iterable[int]) -> list[Parcel]:
        id_list = _id_list(ids)
        if not id_list:
            return []
        sql = SELECT_PARCELS_BY_IDS_TEMPLATE.format(
            columns=PARCEL_COLUMNS, placeholders=placeholders(len(id_list))
        )
        with self._reading() as cur:
            rows = cur.execute(sql, id_list).fetchall()
        return parse_records(_row_to_record(r) for r in rows)

    def zoning_statistics(self) -> dict[str, int]:
        with self._reading() as cur:
            rows = cur.execute(ZONING_STATISTICS_SQL).fetchall()
        return {str(label): int(n) for label, n in rows}

    # -- writes --------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[DuckDBTransaction]:
        """
        Commit on normal exit, roll back on any exception.
        """
        with self._rw.shared():
            cur = self._cursor()
            try:
                cur.begin()
                try:
                    yield DuckDBTransaction(cur)
                except BaseException:
                    _rollback_quietly(cur)
                    raise
                cur.commit()
            except duckdb.Error as e:
                _rollback_quietly(cur)
                logger.error("Parcel store transaction failed: %s", e)
                raise classify_storage_error(e) from e
            finally:
                cur.close()


def _rollback_quietly(cur: duckdb.DuckDBPyConnection) -> None:
    try:
        cur.rollback()
    except duckdb.Error:
        # Already rolled back (e.g. a failed COMMIT aborts the transaction).
        pass


def _id_list(ids: Iterable[int]) -> list[int]:
    return sorted({int(i) for i in ids})


def _record_to_row(r: ParcelRecord) -> list[Any]:
    raw = r.geometry
    geometry_json = raw if isinstance(raw, str) else json.dumps(raw)
    bbox: list[float | None] = [None, None, None, None]
    try:
        geom = parse_geometry(json.loads(geometry_json) if isinstance(raw, str) else raw)
        b = bounds(geom)
        bbox = [b.min_lon, b.min_lat, b.max_lon, b.max_lat]
    except (MalformedGeometry, ValueError):
        logger.warning("Parcel %s stored with unparseable geometry", r.id)
    return [int(r.id), geometry_json, *bbox, *[r.props.get(k) for k in ATTRIBUTE_FIELDS]]


def _row_to_record(row: tuple) -> ParcelRecord:
    pid, geometry_json, *attrs = row
    return ParcelRecord(
        id=int(pid),
        geometry=geometry_json,
        props=dict(zip(ATTRIBUTE_FIELDS, attrs)),
    )
