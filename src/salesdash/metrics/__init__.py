"""Aggregation query engine -- pure dashboard views over the cached deal snapshot.

Every view takes the full snapshot, applies the shared filter predicate from
metrics.filters and reduces the surviving deals into one JSON-serializable
result. MetricsService (metrics.service) wires the snapshot, reference data
and org mapping into those functions.
"""
