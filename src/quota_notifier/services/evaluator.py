"""Threshold evaluation: pure, no I/O."""

from ..models.usage import AlertDecision, OrgUsageSnapshot


def percent_used(memory_used_mb: int, memory_limit_mb: int) -> int:
    """floor(100 * used / limit).

    Raises:
        ValueError: if the limit is not positive.
    """
    if memory_limit_mb <= 0:
        raise ValueError(f"memory limit must be positive, got {memory_limit_mb}")
    return 100 * memory_used_mb // memory_limit_mb


def evaluate(snapshot: OrgUsageSnapshot, threshold_percent: int) -> AlertDecision:
    """Decide whether an organization should alert this pass.

    The threshold is an inclusive lower bound. Usage above 100% is an
    ordinary over-threshold result.
    """
    return AlertDecision(
        org_id=snapshot.org_id,
        percent_used=snapshot.percent_used,
        eligible=snapshot.percent_used >= threshold_percent,
    )
