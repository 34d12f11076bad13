"""Threshold evaluation of aggregated metrics against configured assertions."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from perfgate.models.config import AssertionConfig
from perfgate.models.result import AssertionOutcome
from perfgate.models.run import AggregatedMetric


def evaluate_assertion(
    assertion: AssertionConfig,
    metric: AggregatedMetric | None,
) -> AssertionOutcome:
    """Classify one assertion. A missing metric is never satisfied."""
    if metric is None:
        return AssertionOutcome(
            category=assertion.category,
            severity=assertion.severity,
            threshold=assertion.min_score,
            actual=None,
            satisfied=False,
            missing_metric=True,
        )
    return AssertionOutcome(
        category=assertion.category,
        severity=assertion.severity,
        threshold=assertion.min_score,
        actual=metric.score,
        satisfied=metric.score >= assertion.min_score,
    )


def evaluate_assertions(
    metrics: Mapping[str, AggregatedMetric],
    assertions: Sequence[AssertionConfig],
) -> list[AssertionOutcome]:
    """Produce one outcome per assertion, in configuration order.

    Args:
        metrics: Aggregated metrics keyed by category.
        assertions: Configured assertions.

    Returns:
        List of AssertionOutcome, one per assertion.
    """
    return [
        evaluate_assertion(assertion, metrics.get(assertion.category))
        for assertion in assertions
    ]
