"""
Parcel storage.

A store holds parcel records and answers bounding-box queries. The DuckDB store backs
the service; the in-memory store backs client-side fallbacks and tests. Both satisfy
`store.types.GeometryStore`.
"""
