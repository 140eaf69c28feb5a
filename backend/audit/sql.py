from __future__ import annotations

CREATE_AUDIT_SEQUENCE_SQL = "CREATE SEQUENCE IF NOT EXISTS audit_log_seq START 1;"

CREATE_AUDIT_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS audit_log (
  id BIGINT PRIMARY KEY DEFAULT nextval('audit_log_seq'),
  ts_ms BIGINT NOT NULL,
  action TEXT NOT NULL,
  details TEXT,
  actor TEXT NOT NULL
);
"""

INSERT_AUDIT_SQL = """
INSERT INTO audit_log (ts_ms, action, details, actor)
VALUES (?, ?, ?, ?);
"""

SELECT_AUDIT_TEMPLATE = """
SELECT id, ts_ms, action, details, actor
FROM audit_log
{where_sql}
ORDER BY id ASC;
"""

PRUNE_AUDIT_BY_AGE_SQL = "DELETE FROM audit_log WHERE ts_ms < ?;"

PRUNE_AUDIT_BY_COUNT_SQL = """
DELETE FROM audit_log
WHERE id NOT IN (
  SELECT id FROM audit_log ORDER BY id DESC LIMIT ?
);
"""
