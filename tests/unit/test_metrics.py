"""Unit tests for metrics module."""

from truthstream.core import metrics


def test_metrics_are_defined():
    assert hasattr(metrics, "truthstream_verification_runs_total")
    assert hasattr(metrics, "truthstream_verification_latency_seconds")
    assert hasattr(metrics, "truthstream_stage_latency_seconds")
    assert hasattr(metrics, "truthstream_stage_outcomes_total")
    assert hasattr(metrics, "truthstream_proofs_generated_total")
    assert hasattr(metrics, "truthstream_ledger_records_total")
    assert hasattr(metrics, "truthstream_trust_score")


def test_metrics_have_labels():
    assert hasattr(metrics.truthstream_verification_runs_total, "labels")
    assert hasattr(metrics.truthstream_stage_latency_seconds, "labels")
    assert hasattr(metrics.truthstream_stage_outcomes_total, "labels")
    assert hasattr(metrics.truthstream_proofs_generated_total, "labels")
