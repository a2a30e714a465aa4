"""Error hierarchy for documentation build failures.

Each exception knows the stage it belongs to and carries an RFC 9457 Problem
Details payload that the lifecycle runner prints when the run halts. Failures
raised by MkDocs, ghp-import or git are not wrapped in these types; they reach
the lifecycle runner unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from styledocs.problem_details import (
    ProblemDetailsParams,
    build_problem_details,
    problem_type,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

    from styledocs.problem_details import JsonValue, ProblemDetailsDict

__all__ = [
    "DestinationWriteError",
    "DocumentationBuildError",
    "LinkCheckError",
    "LinkFailure",
    "SourceNotFoundError",
    "StageOrderError",
]


class DocumentationBuildError(RuntimeError):
    """Base exception for all documentation build failures.

    Parameters
    ----------
    message : str
        Human-readable error message.
    stage : str
        Pipeline stage that failed (``prepare``, ``build`` or ``publish``).
    slug : str
        Problem type slug.
    title : str
        Problem Details title.
    status : int
        Problem Details status.
    extensions : Mapping[str, JsonValue] | None, optional
        Additional Problem Details members.
    """

    def __init__(
        self,
        message: str,
        *,
        stage: str,
        slug: str,
        title: str,
        status: int = 500,
        extensions: Mapping[str, JsonValue] | None = None,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        merged: dict[str, JsonValue] = {"stage": stage}
        if extensions:
            merged.update(extensions)
        self.problem: ProblemDetailsDict = build_problem_details(
            ProblemDetailsParams(
                type=problem_type(slug),
                title=title,
                status=status,
                detail=message,
                instance=f"urn:styledocs:stage:{stage}",
                extensions=merged,
            )
        )


class SourceNotFoundError(DocumentationBuildError):
    """Raised when the source document is missing or unreadable."""

    def __init__(self, path: Path, reason: str | None = None) -> None:
        message = f"Source document not found or unreadable: {path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(
            message,
            stage="prepare",
            slug="source-missing",
            title="Source document not found",
            status=404,
            extensions={"path": str(path)},
        )
        self.path = path


class DestinationWriteError(DocumentationBuildError):
    """Raised when the destination document cannot be written."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(
            f"Cannot write destination document {path}: {reason}",
            stage="prepare",
            slug="destination-unwritable",
            title="Destination document not writable",
            extensions={"path": str(path)},
        )
        self.path = path


@dataclass(frozen=True, slots=True)
class LinkFailure:
    """One external link that failed validation."""

    url: str
    reason: str
    status_code: int | None = None
    page: str | None = None

    def to_json(self) -> dict[str, JsonValue]:
        """Return a JSON-compatible description of the failure."""
        return {
            "url": self.url,
            "reason": self.reason,
            "status_code": self.status_code,
            "page": self.page,
        }


class LinkCheckError(DocumentationBuildError):
    """Raised when non-exempt external links are unreachable.

    The message lists every offending URL so the operator can either fix the
    link or add it to the exemption list.
    """

    def __init__(self, failures: Sequence[LinkFailure]) -> None:
        self.failures: tuple[LinkFailure, ...] = tuple(failures)
        listing = ", ".join(
            f"{failure.url} ({failure.reason})" for failure in self.failures
        )
        super().__init__(
            f"{len(self.failures)} external link(s) failed validation: {listing}",
            stage="build",
            slug="link-check-failed",
            title="External link check failed",
            status=502,
            extensions={"failedLinks": [failure.to_json() for failure in self.failures]},
        )

    @property
    def urls(self) -> tuple[str, ...]:
        """Return the offending URLs in check order."""
        return tuple(failure.url for failure in self.failures)


class StageOrderError(DocumentationBuildError):
    """Raised when a stage runs before the stage it depends on."""

    def __init__(self, stage: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Cannot run {stage!r} while the build is {actual!r}; expected {expected!r}",
            stage=stage,
            slug="stage-out-of-order",
            title="Stage invoked out of order",
            status=409,
            extensions={"expected_state": expected, "actual_state": actual},
        )
