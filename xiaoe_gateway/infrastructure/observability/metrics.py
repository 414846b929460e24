"""Prometheus metrics for monitoring generation volume, credit flow, and provider health"""

from prometheus_client import Counter, Histogram

# Generation metrics
generation_counter = Counter(
    "xiaoe_generation_total",
    "Generation requests by model and outcome",
    ["kind", "model", "outcome"],  # kind: comment | alternatives
)

credits_debited_counter = Counter(
    "xiaoe_credits_debited_total",
    "Credits spent on generation",
)

credits_granted_counter = Counter(
    "xiaoe_credits_granted_total",
    "Credits granted by paid orders",
)

# Vendor metrics
vendor_latency_histogram = Histogram(
    "llm_vendor_latency_seconds",
    "Text generation vendor response time",
    ["vendor"],
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0, 60.0],
)

vendor_failure_counter = Counter(
    "llm_vendor_failures_total",
    "Failed text generation vendor calls",
    ["vendor"],
)

# Payment metrics
payment_notification_counter = Counter(
    "payment_notifications_total",
    "Payment notifications by outcome",
    ["outcome"],  # credited | duplicate | ignored | rejected | error
)

payment_order_counter = Counter(
    "payment_orders_total",
    "Recharge orders by outcome",
    ["outcome"],  # created | failed | cancelled
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


# Model selectors come from clients, so unknown values share one label
KNOWN_MODELS = {"gemini", "deepseek", "openai", "template"}


def record_generation(kind: str, model: str, outcome: str, credits_used: int = 0) -> None:
    """Record one generation attempt and the credits it consumed"""
    model_label = model if model in KNOWN_MODELS else "other"
    generation_counter.labels(kind=kind, model=model_label, outcome=outcome).inc()
    if credits_used > 0:
        credits_debited_counter.inc(credits_used)


def record_notification(credited: bool, notes: list, credits_granted: int = 0) -> None:
    if credited:
        payment_notification_counter.labels(outcome="credited").inc()
        credits_granted_counter.inc(credits_granted)
    elif "already paid" in notes:
        payment_notification_counter.labels(outcome="duplicate").inc()
    else:
        payment_notification_counter.labels(outcome="ignored").inc()
