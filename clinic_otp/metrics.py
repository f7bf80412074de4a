"""
OTP Metrics
===========
Prometheus counters for issuance, verification and ticket redemption.
"""

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# Custom registry so the core never collides with a host app's metrics
OTP_REGISTRY = CollectorRegistry()

OTP_ISSUED_TOTAL = Counter(
    name="otp_issued_total",
    documentation="OTP challenges issued",
    labelnames=["delivered"],
    registry=OTP_REGISTRY,
)

OTP_VERIFICATIONS_TOTAL = Counter(
    name="otp_verifications_total",
    documentation="OTP verification attempts by lookup path and outcome",
    labelnames=["path", "reason"],
    registry=OTP_REGISTRY,
)

OTP_SWEPT_TOTAL = Counter(
    name="otp_swept_total",
    documentation="Expired challenges removed by the sweeper",
    registry=OTP_REGISTRY,
)

OTP_TICKETS_CONSUMED_TOTAL = Counter(
    name="otp_tickets_consumed_total",
    documentation="Login ticket redemptions",
    labelnames=["outcome"],
    registry=OTP_REGISTRY,
)

OTP_LIVE_CHALLENGES = Gauge(
    name="otp_live_challenges",
    documentation="Challenges currently held in memory",
    registry=OTP_REGISTRY,
)


def record_issue(delivered: bool) -> None:
    OTP_ISSUED_TOTAL.labels(delivered=str(delivered).lower()).inc()


def record_verification(path: str, reason: str) -> None:
    OTP_VERIFICATIONS_TOTAL.labels(path=path, reason=reason).inc()


def record_sweep(removed: int, live: int) -> None:
    if removed:
        OTP_SWEPT_TOTAL.inc(removed)
    OTP_LIVE_CHALLENGES.set(live)


def record_ticket(consumed: bool) -> None:
    OTP_TICKETS_CONSUMED_TOTAL.labels(outcome="accepted" if consumed else "rejected").inc()


def get_metrics_text() -> bytes:
    """Prometheus exposition of the OTP registry."""
    return generate_latest(OTP_REGISTRY)


__all__ = [
    "OTP_REGISTRY",
    "CONTENT_TYPE_LATEST",
    "record_issue",
    "record_verification",
    "record_sweep",
    "record_ticket",
    "get_metrics_text",
]
