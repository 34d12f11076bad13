"""Gate decision engine -- pass/fail verdict from assertion outcomes.

Only blocking outcomes decide the verdict; advisory outcomes are kept
on the verdict for reporting. Errored runs never reach the engine.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import assert_never

from perfgate.models.config import Severity
from perfgate.models.result import AssertionOutcome, GateDecision, GateVerdict
from perfgate.models.run import PipelineRun, RunStatus

logger = logging.getLogger(__name__)


class GateDecisionEngine:
    """Combines assertion outcomes into a GateVerdict and applies it to a run."""

    def decide(self, outcomes: Sequence[AssertionOutcome]) -> GateVerdict:
        """Compute the verdict for a complete outcome set.

        Args:
            outcomes: Every outcome of the run, blocking and advisory.

        Returns:
            GateVerdict carrying all outcomes and one reason per
            unsatisfied outcome.
        """
        blocked = False
        reasons: list[str] = []

        for outcome in outcomes:
            if outcome.satisfied:
                continue
            match outcome.severity:
                case Severity.blocking:
                    blocked = True
                    reasons.append(f"blocking {outcome.describe()}")
                case Severity.advisory:
                    reasons.append(f"advisory {outcome.describe()}")
                case _:
                    assert_never(outcome.severity)

        decision = GateDecision.failed if blocked else GateDecision.passed
        return GateVerdict(decision=decision, outcomes=list(outcomes), reasons=reasons)

    def apply(self, run: PipelineRun, outcomes: Sequence[AssertionOutcome]) -> GateVerdict:
        """Decide the verdict and transition a running run to passed or failed.

        Raises:
            InvalidTransition: If the run is not currently running.
        """
        verdict = self.decide(outcomes)
        target = RunStatus.passed if verdict.passed else RunStatus.failed
        run.transition(target)

        for reason in verdict.reasons:
            logger.warning("Run %s: %s", run.run_id, reason)
        logger.info("Run %s gate %s", run.run_id, verdict.decision.value)
        return verdict
