"""Base classes for the external collaborators of the pipeline.

The orchestrator treats build, measurement, and publishing as opaque
async operations. Builtin implementations (command, lighthouse) and
custom ones loaded by dotted path all subclass these ABCs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from perfgate.models.result import DeployResult
from perfgate.models.run import ArtifactRef, BuildArtifact, MetricSample


class BaseBuilder(ABC):
    """Produces an artifact from a source revision."""

    @abstractmethod
    async def build(self, revision: str) -> BuildArtifact:
        """Build ``revision`` and return the artifact.

        Raises:
            BuildError: If the build fails.
        """
        ...


class BaseMeasurementEngine(ABC):
    """Produces one raw score for one category of an artifact."""

    @abstractmethod
    async def measure(
        self,
        artifact: ArtifactRef,
        category: str,
        pass_index: int,
    ) -> MetricSample | None:
        """Measure ``category`` of ``artifact`` for audit pass ``pass_index``.

        Returns:
            The sample, or None if the engine skipped the category.

        Raises:
            MeasurementError: If the measurement could not be taken.
        """
        ...

    def forget(self, run_id: str) -> None:
        """Drop any per-run state once the run is finished.

        Default implementation does nothing.
        """


class BasePublisher(ABC):
    """Publishes an artifact to a named deployment target."""

    @abstractmethod
    async def publish(self, artifact: ArtifactRef, target_name: str) -> DeployResult:
        """Deploy ``artifact`` to ``target_name``.

        Raises:
            PublishError: If the deployment fails.
        """
        ...

    def provider_name(self) -> str:
        """Return the provider name for this publisher.

        Default implementation returns the class name.
        """
        return type(self).__name__
