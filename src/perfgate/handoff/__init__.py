"""Artifact handoff between pipeline stages."""

from perfgate.handoff.store import ArtifactHandoff

__all__ = ["ArtifactHandoff"]
