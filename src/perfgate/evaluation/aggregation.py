"""Median aggregation of repeated measurement samples.

Reduces the N samples collected per category into one representative
score. The median suppresses single-pass outliers caused by transient
noise on the measuring machine.
"""

from __future__ import annotations

import statistics
from collections.abc import Iterable, Sequence

from perfgate.errors import MissingSamples
from perfgate.models.run import AggregatedMetric, MetricSample


def median_score(scores: Sequence[float]) -> float:
    """Return the median of ``scores``.

    Odd counts return the middle value; even counts return the mean of
    the two middle values.

    Raises:
        MissingSamples: If ``scores`` is empty.
    """
    if not scores:
        raise MissingSamples("<unknown>", expected=1, actual=0)
    return statistics.median(scores)


def group_samples(samples: Iterable[MetricSample]) -> dict[str, list[MetricSample]]:
    """Group samples by category, each group ordered by pass index."""
    groups: dict[str, list[MetricSample]] = {}
    for sample in samples:
        groups.setdefault(sample.category, []).append(sample)
    for group in groups.values():
        group.sort(key=lambda s: s.pass_index)
    return groups


def aggregate_samples(
    samples: Iterable[MetricSample],
    expected_passes: int,
    required_categories: Iterable[str] = (),
) -> dict[str, AggregatedMetric]:
    """Reduce samples to one AggregatedMetric per measured category.

    A category with no samples at all is left out of the result unless
    it is required; the evaluator then reports it as a missing metric.

    Args:
        samples: All samples collected by the audit stage.
        expected_passes: Number of passes each measured category must cover.
        required_categories: Categories that must have been measured.

    Returns:
        Mapping of category to its AggregatedMetric.

    Raises:
        MissingSamples: If a required category has no samples, or a
            measured category has a sample count other than
            ``expected_passes``.
    """
    groups = group_samples(samples)

    for category in required_categories:
        if category not in groups:
            raise MissingSamples(category, expected=expected_passes, actual=0)

    metrics: dict[str, AggregatedMetric] = {}
    for category, group in groups.items():
        if len(group) != expected_passes:
            raise MissingSamples(category, expected=expected_passes, actual=len(group))
        scores = [s.score for s in group]
        metrics[category] = AggregatedMetric(
            category=category,
            score=median_score(scores),
            samples=scores,
        )
    return metrics
