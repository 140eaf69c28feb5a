from __future__ import annotations

CREATE_PARCELS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS parcels (
  id INTEGER PRIMARY KEY,
  geometry_json TEXT,
  min_lon DOUBLE,
  min_lat DOUBLE,
  max_lon DOUBLE,
  max_lat DOUBLE,
  name TEXT,
  owner TEXT,
  mailadd TEXT,
  mail_city TEXT,
  mail_zip TEXT,
  parcelnumb TEXT,
  zoning TEXT,
  zoning_typ TEXT,
  zoning_sub TEXT
);
"""

PARCEL_COLUMNS = (
    "id, geometry_json, name, owner, mailadd, mail_city, mail_zip, "
    "parcelnumb, zoning, zoning_typ, zoning_sub"
)

UPSERT_PARCEL_SQL = """
INSERT OR REPLACE INTO parcels
  (id, geometry_json, min_lon, min_lat, max_lon, max_lat,
   name, owner, mailadd, mail_city, mail_zip, parcelnumb, zoning, zoning_typ, zoning_sub)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

# Coarse bbox prefilter. Rows whose bbox could not be computed at load time are
# always returned so the exact test (and malformed-geometry logging) sees them.
SELECT_BBOX_CANDIDATES_SQL = f"""
SELECT {PARCEL_COLUMNS}
FROM parcels
WHERE min_lon IS NULL
   OR (max_lon >= ? AND min_lon <= ? AND max_lat >= ? AND min_lat <= ?)
ORDER BY id
"""

SELECT_ALL_PARCELS_SQL = f"""
SELECT {PARCEL_COLUMNS}
FROM parcels
ORDER BY id
"""

SELECT_PARCELS_BY_IDS_TEMPLATE = """
SELECT {columns}
FROM parcels
WHERE id IN ({placeholders})
ORDER BY id
"""

SELECT_ZONING_BY_IDS_TEMPLATE = """
SELECT id, zoning_typ, zoning_sub
FROM parcels
WHERE id IN ({placeholders})
ORDER BY id
"""

UPDATE_ZONING_TEMPLATE = """
UPDATE parcels
SET zoning_typ = ?, zoning_sub = ?
WHERE id IN ({placeholders})
"""

ZONING_STATISTICS_SQL = """
SELECT COALESCE(zoning_typ, 'Unknown') AS label, COUNT(*) AS n
FROM parcels
GROUP BY 1
ORDER BY 1
"""

COUNT_PARCELS_SQL = "SELECT COUNT(*) FROM parcels"


def placeholders(n: int) -> str:
    return ", ".join(["?"] * int(n))
