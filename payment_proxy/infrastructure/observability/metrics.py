"""Prometheus metrics for transaction outcomes, risk scoring and dependency health"""

from prometheus_client import Counter, Histogram, Gauge

# Transaction metrics
transaction_counter = Counter(
    "payment_transactions_processed_total",
    "Transactions processed by final status",
    ["status"],  # success | processing | pending | failed
)

risk_score_histogram = Histogram(
    "payment_risk_score",
    "Final combined risk score per transaction",
    buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
)

rule_block_counter = Counter(
    "fraud_rule_blocks_total",
    "Transactions hard-blocked by fraud rules",
)

# Risk model metrics
risk_assessment_counter = Counter(
    "risk_assessment_source_total",
    "Risk assessments by where the result came from",
    ["source"],  # model | cache | fallback | disabled
)

llm_latency_histogram = Histogram(
    "llm_request_latency_seconds",
    "Risk model response time",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 90.0],
)

llm_failure_counter = Counter(
    "llm_request_failures_total",
    "Failed risk model calls",
    ["reason"],  # remote | malformed
)

circuit_breaker_state_gauge = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=half_open, 2=open)",
    ["name"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transaction(status: str, risk_score: float) -> None:
    """Record outcome metrics for monitoring approval and review rates"""
    transaction_counter.labels(status=status).inc()
    risk_score_histogram.observe(risk_score)
