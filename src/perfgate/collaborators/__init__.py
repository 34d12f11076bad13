"""perfgate collaborators - build, measurement, and publish abstraction layer.

Re-exports the collaborator ABCs and the registry functions. Builtin
implementations are imported lazily by the registry.
"""

from perfgate.collaborators.base import BaseBuilder, BaseMeasurementEngine, BasePublisher
from perfgate.collaborators.registry import (
    get_builder,
    get_measurement_engine,
    get_publisher,
    resolve_class,
)

__all__ = [
    "BaseBuilder",
    "BaseMeasurementEngine",
    "BasePublisher",
    "get_builder",
    "get_measurement_engine",
    "get_publisher",
    "resolve_class",
]
