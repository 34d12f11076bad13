"""Shell-command builder and publisher.

CommandBuilder runs the project's build script (``npm run build`` by
default) and fingerprints the output directory. CommandPublisher runs a
deploy CLI (``wrangler pages deploy`` by default) and scrapes the
deployment URL from its output.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path

from perfgate.collaborators.base import BaseBuilder, BasePublisher
from perfgate.collaborators.process import run_command
from perfgate.errors import BuildError, PublishError
from perfgate.models.result import DeployResult
from perfgate.models.run import ArtifactRef, BuildArtifact

logger = logging.getLogger(__name__)

DEFAULT_BUILD_COMMAND = "npm run build"
DEFAULT_PUBLISH_COMMAND = "npx wrangler pages deploy {location} --project-name {target}"
DEFAULT_DEPLOYMENT_PATTERN = r"https://\S+"


def digest_tree(root: Path) -> str:
    """SHA-256 over every file under ``root`` (relative path and contents)."""
    sha = hashlib.sha256()
    for path in sorted(p for p in root.rglob("*") if p.is_file()):
        sha.update(path.relative_to(root).as_posix().encode("utf-8"))
        sha.update(b"\0")
        sha.update(path.read_bytes())
    return sha.hexdigest()


class CommandBuilder(BaseBuilder):
    """Builds by running a shell command, then digests the output directory.

    Args:
        command: Build command. The revision is exported as PERFGATE_REVISION.
        cwd: Working directory for the command (default: current directory).
        output_dir: Build output directory, relative to ``cwd``.
    """

    def __init__(
        self,
        command: str = DEFAULT_BUILD_COMMAND,
        cwd: str | None = None,
        output_dir: str = "dist",
    ) -> None:
        self.command = command
        self.cwd = Path(cwd) if cwd else Path.cwd()
        self.output_dir = output_dir

    async def build(self, revision: str) -> BuildArtifact:
        result = await run_command(
            self.command,
            cwd=self.cwd,
            env={"PERFGATE_REVISION": revision},
        )
        if not result.ok:
            raise BuildError(
                f"Build command exited with {result.returncode}: {result.tail()}"
            )

        output = (self.cwd / self.output_dir).resolve()
        if not output.is_dir():
            raise BuildError(f"Build output directory not found: {output}")

        digest = digest_tree(output)
        logger.info("Built revision %s -> %s (%s)", revision, output, digest[:12])
        return BuildArtifact(digest=digest, location=str(output))


class CommandPublisher(BasePublisher):
    """Deploys by running a shell command and parsing its output.

    The command template may reference ``{location}``, ``{target}``,
    ``{digest}`` and ``{run_id}``. The deployment id is the first match of
    ``deployment_pattern`` in stdout (group 1 if the pattern has a group).

    Args:
        command: Deploy command template.
        cwd: Working directory for the command.
        deployment_pattern: Regex locating the deployment id/URL in stdout.
    """

    def __init__(
        self,
        command: str = DEFAULT_PUBLISH_COMMAND,
        cwd: str | None = None,
        deployment_pattern: str = DEFAULT_DEPLOYMENT_PATTERN,
    ) -> None:
        self.command = command
        self.cwd = Path(cwd) if cwd else None
        self._pattern = re.compile(deployment_pattern)

    async def publish(self, artifact: ArtifactRef, target_name: str) -> DeployResult:
        command = self.command.format(
            location=artifact.location,
            target=target_name,
            digest=artifact.digest,
            run_id=artifact.run_id,
        )
        result = await run_command(command, cwd=self.cwd)
        if not result.ok:
            raise PublishError(
                f"Deploy command exited with {result.returncode}: {result.tail()}"
            )

        match = self._pattern.search(result.stdout)
        if match is None:
            raise PublishError("Deploy command output did not contain a deployment id")

        deployment_id = match.group(1) if self._pattern.groups else match.group(0)
        url = deployment_id if deployment_id.startswith(("http://", "https://")) else None
        return DeployResult(deployment_id=deployment_id, url=url)
