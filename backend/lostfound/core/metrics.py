"""Prometheus metrics for the matching engine."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# Match search metrics
match_searches_total = Counter(
    "lostfound_match_searches_total",
    "Total number of completed match searches",
)
match_pairs_compared_total = Counter(
    "lostfound_match_pairs_compared_total",
    "Total number of lost/found report pairs scored",
)
match_candidates_total = Counter(
    "lostfound_match_candidates_total",
    "Total number of pairs that cleared the confidence threshold",
)
match_search_duration_seconds = Histogram(
    "lostfound_match_search_duration_seconds",
    "Wall-clock duration of a full match search in seconds",
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0, 900.0),
)

# Similarity metrics
similarity_fallbacks_total = Counter(
    "lostfound_similarity_fallbacks_total",
    "Total number of pairs scored on the text-only fallback path",
)

# Classifier metrics
classifier_failures_total = Counter(
    "lostfound_classifier_failures_total",
    "Total number of per-image classification failures",
    ["kind"],  # kind: load, classify
)
classifier_duration_seconds = Histogram(
    "lostfound_classifier_duration_seconds",
    "Duration of fetching and classifying one image in seconds",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# Persistence metrics
persistence_failures_total = Counter(
    "lostfound_persistence_failures_total",
    "Total number of failed bulk inserts of match candidates",
)
