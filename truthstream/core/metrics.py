"""Prometheus metrics for the verification core."""

from prometheus_client import Counter, Histogram

# ---------------------------------------------------------------------------
# Verification runs (end to end)
# ---------------------------------------------------------------------------

truthstream_verification_runs_total = Counter(
    "truthstream_verification_runs_total",
    "Total verification runs by final status",
    ["status"],  # verified | unverified | cancelled
)

truthstream_verification_latency_seconds = Histogram(
    "truthstream_verification_latency_seconds",
    "End-to-end verification run latency in seconds",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 15.0, 30.0],
)

# ---------------------------------------------------------------------------
# Per-stage
# ---------------------------------------------------------------------------

truthstream_stage_latency_seconds = Histogram(
    "truthstream_stage_latency_seconds",
    "Latency per verification stage in seconds",
    ["stage"],  # location | payment | social | ledger_record
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 15.0],
)

truthstream_stage_outcomes_total = Counter(
    "truthstream_stage_outcomes_total",
    "Terminal stage outcomes",
    ["stage", "state", "failure"],
)

# ---------------------------------------------------------------------------
# Proofs, ledger, trust
# ---------------------------------------------------------------------------

truthstream_proofs_generated_total = Counter(
    "truthstream_proofs_generated_total",
    "Total proofs generated",
    ["kind"],
)

truthstream_ledger_records_total = Counter(
    "truthstream_ledger_records_total",
    "Ledger recording attempts by outcome",
    ["status"],  # success | error
)

truthstream_trust_score = Histogram(
    "truthstream_trust_score",
    "Distribution of computed trust scores (0-100)",
    buckets=[10, 20, 30, 40, 50, 60, 70, 80, 90, 100],
)
