"""Publish stage: push the rendered site to the deployment branch.

The site directory is committed onto the target branch with ``ghp-import``
(the same mechanism ``mkdocs gh-deploy`` uses) and pushed to the target
repository. The remote branch is fetched first, so every deploy commit extends
the published history. Publishing only happens from the configured
development branch.
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ghp_import import ghp_import

from styledocs.logging import get_logger, with_fields
from styledocs.process import ProcessRunner
from styledocs.settings import get_runtime_settings

if TYPE_CHECKING:
    from pathlib import Path

    from styledocs.build import SiteArtifact
    from styledocs.config import DeployTarget

__all__ = ["PublishReceipt", "current_branch", "fetch_deploy_branch", "head_commit", "publish"]

LOGGER = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PublishReceipt:
    """What the publish stage did."""

    deployed: bool
    remote: str
    branch: str
    source_commit: str | None = None
    pushed: bool = False
    reason: str | None = None


def current_branch(runner: ProcessRunner, cwd: Path | None = None) -> str:
    """Return the checked-out branch name (``HEAD`` when detached)."""
    result = runner.run(["git", "rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd, check=True)
    return result.stdout.strip()


def head_commit(runner: ProcessRunner, cwd: Path | None = None) -> str:
    """Return the SHA of the checked-out commit."""
    result = runner.run(["git", "rev-parse", "HEAD"], cwd=cwd, check=True)
    return result.stdout.strip()


def fetch_deploy_branch(
    runner: ProcessRunner, remote: str, branch: str, cwd: Path | None = None
) -> bool:
    """Point the local ``branch`` at the tip of ``branch`` on ``remote``.

    ``ghp-import`` commits on top of the local branch, so the deploy commit
    fast-forwards the remote only after this update.

    Returns
    -------
    bool
        ``False`` when the remote has no such branch yet.
    """
    ref = f"refs/heads/{branch}"
    listing = runner.run(["git", "ls-remote", "--heads", remote, ref], cwd=cwd, check=True)
    if not listing.stdout.strip():
        return False
    runner.run(["git", "fetch", "--no-tags", remote, f"+{ref}:{ref}"], cwd=cwd, check=True)
    return True


def publish(
    artifact: SiteArtifact,
    target: DeployTarget,
    *,
    cwd: Path | None = None,
    runner: ProcessRunner | None = None,
    push: bool | None = None,
) -> PublishReceipt:
    """Commit ``artifact`` to ``target.branch`` and push it to ``target.repo``.

    Parameters
    ----------
    artifact : SiteArtifact
        Site produced by the build stage.
    target : DeployTarget
        Repository and branch identifiers.
    cwd : Path | None, optional
        Git working tree to deploy from; defaults to the current directory.
    runner : ProcessRunner | None, optional
        Runner for the ``git`` queries.
    push : bool | None, optional
        Override ``STYLEDOCS_DEPLOY_PUSH``; ``False`` only updates the local branch.

    Returns
    -------
    PublishReceipt
        Whether the site was deployed, and where.
    """
    runner = runner or ProcessRunner()
    remote = target.remote_url
    logger = with_fields(LOGGER, operation="publish", remote=remote, branch=target.branch)

    if target.devbranch is not None:
        branch = current_branch(runner, cwd)
        if branch != target.devbranch:
            reason = f"checked-out branch {branch!r} is not the deploy branch {target.devbranch!r}"
            logger.info("Skipping deploy", extra={"status": "skipped", "reason": reason})
            return PublishReceipt(
                deployed=False, remote=remote, branch=target.branch, reason=reason
            )

    sha = head_commit(runner, cwd)
    should_push = get_runtime_settings().deploy_push if push is None else push
    message = f"Deploy documentation for {sha}"
    if should_push:
        existing = fetch_deploy_branch(runner, remote, target.branch, cwd)
        logger.debug("Deploy branch synchronised", extra={"remote_branch_exists": existing})
    with contextlib.chdir(cwd) if cwd is not None else contextlib.nullcontext():
        ghp_import(
            str(artifact.site_dir),
            mesg=message,
            remote=remote,
            branch=target.branch,
            push=should_push,
            nojekyll=True,
        )
    logger.info(
        "Site deployed",
        extra={"status": "success", "source_commit": sha, "pushed": should_push},
    )
    return PublishReceipt(
        deployed=True,
        remote=remote,
        branch=target.branch,
        source_commit=sha,
        pushed=should_push,
    )
