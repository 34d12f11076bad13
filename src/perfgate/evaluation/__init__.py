"""Evaluation package for sample aggregation, assertions, and gating.

Provides assertion normalization, median aggregation, threshold
evaluation, and the gate decision engine.
"""

from __future__ import annotations

from perfgate.evaluation.aggregation import aggregate_samples, median_score
from perfgate.evaluation.assertions import evaluate_assertion, evaluate_assertions
from perfgate.evaluation.gate import GateDecisionEngine
from perfgate.evaluation.normalizer import normalize_assertion, normalize_assertions

__all__ = [
    "GateDecisionEngine",
    "aggregate_samples",
    "evaluate_assertion",
    "evaluate_assertions",
    "median_score",
    "normalize_assertion",
    "normalize_assertions",
]
