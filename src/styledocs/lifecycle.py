"""Stage sequencing and run management for the documentation build.

:class:`DocBuildStep` holds the state machine
``IDLE -> PREPARED -> BUILT -> PUBLISHED -> IDLE``: every stage checks the
state it starts from, and any failure puts the step back to ``IDLE``.
:class:`DocLifecycle` runs the stages in order for the CLI, logging start and
stop events, recording metrics and turning failures into a Problem Details
document plus an exit code.
"""

from __future__ import annotations

import sys
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, TextIO, TypeVar

from styledocs.build import build as build_site
from styledocs.errors import DocumentationBuildError, StageOrderError
from styledocs.logging import get_logger, with_fields
from styledocs.metrics import StageMetrics, write_metrics
from styledocs.prepare import prepare as prepare_document
from styledocs.problem_details import (
    ExceptionProblemDetailsParams,
    ProblemDetailsDict,
    ProblemDetailsParams,
    build_problem_details,
    problem_from_exception,
    problem_type,
    render_problem,
)
from styledocs.publish import PublishReceipt
from styledocs.publish import publish as publish_site
from styledocs.settings import get_runtime_settings

if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx

    from styledocs.build import SiteArtifact
    from styledocs.process import ProcessRunner
    from styledocs.project import DocsProject

__all__ = ["BuildState", "DocBuildStep", "DocLifecycle"]

LOGGER = get_logger(__name__)

T = TypeVar("T")


class BuildState(StrEnum):
    """Position of a :class:`DocBuildStep` in its stage sequence."""

    IDLE = "idle"
    PREPARED = "prepared"
    BUILT = "built"
    PUBLISHED = "published"


@dataclass(slots=True)
class DocBuildStep:
    """Prepare, build and publish the documentation of one project.

    Parameters
    ----------
    project : DocsProject
        Paths and site configuration.
    metrics : StageMetrics, optional
        Recorder for stage outcomes and durations.

    Examples
    --------
    >>> step = DocBuildStep(project)  # doctest: +SKIP
    >>> step.prepare()  # doctest: +SKIP
    >>> artifact = step.build()  # doctest: +SKIP
    >>> step.publish()  # doctest: +SKIP
    """

    project: DocsProject
    metrics: StageMetrics = field(default_factory=StageMetrics)
    state: BuildState = BuildState.IDLE
    artifact: SiteArtifact | None = None
    receipt: PublishReceipt | None = None
    failed_stage: str | None = None

    def prepare(self) -> None:
        """Write the destination document from the source document."""
        project = self.project
        self._run_stage(
            "prepare",
            BuildState.IDLE,
            lambda: prepare_document(project.source, project.destination, project.header),
        )
        self.artifact = None
        self.receipt = None
        self.state = BuildState.PREPARED

    def build(self, *, client: httpx.Client | None = None) -> SiteArtifact:
        """Render the site from the prepared docs tree."""
        artifact = self._run_stage(
            "build",
            BuildState.PREPARED,
            lambda: build_site(self.project.site, client=client),
        )
        self.artifact = artifact
        self.state = BuildState.BUILT
        return artifact

    def publish(
        self, *, runner: ProcessRunner | None = None, push: bool | None = None
    ) -> PublishReceipt:
        """Deploy the built site; the step is idle again afterwards."""
        receipt = self._run_stage("publish", BuildState.BUILT, lambda: self._publish(runner, push))
        self.receipt = receipt
        self.state = BuildState.PUBLISHED
        LOGGER.debug("Build cycle finished", extra={"operation": "publish"})
        self.state = BuildState.IDLE
        return receipt

    def _publish(self, runner: ProcessRunner | None, push: bool | None) -> PublishReceipt:
        target = self.project.site.deploy
        if target is None:
            msg = f"Site {self.project.site.sitename!r} has no deployment target"
            raise ValueError(msg)
        if self.artifact is None:
            msg = "No site artifact to publish"
            raise RuntimeError(msg)
        return publish_site(self.artifact, target, cwd=self.project.root, runner=runner, push=push)

    def _run_stage(self, stage: str, expected: BuildState, work: Callable[[], T]) -> T:
        logger = with_fields(LOGGER, operation=stage)
        if self.state is not expected:
            actual = self.state
            self._reset(stage)
            raise StageOrderError(stage, expected.value, actual.value)

        logger.info("Stage started", extra={"status": "started"})
        start = time.monotonic()
        try:
            result = work()
        except BaseException as exc:
            duration = time.monotonic() - start
            status = "cancelled" if isinstance(exc, KeyboardInterrupt) else "error"
            self.metrics.observe(stage, status, duration)
            self._reset(stage)
            logger.warning(
                "Stage failed",
                extra={"status": status, "duration_ms": duration * 1000.0},
            )
            raise

        duration = time.monotonic() - start
        self.metrics.observe(stage, "success", duration)
        self.failed_stage = None
        logger.info(
            "Stage completed",
            extra={"status": "success", "duration_ms": duration * 1000.0},
        )
        return result

    def _reset(self, stage: str) -> None:
        self.state = BuildState.IDLE
        self.failed_stage = stage


@dataclass(slots=True)
class DocLifecycle:
    """Run every stage of a :class:`DocBuildStep` and report the outcome.

    Parameters
    ----------
    step : DocBuildStep
        Step to drive.
    skip_deploy : bool, optional
        Stop after the build stage.
    client : httpx.Client | None, optional
        HTTP client for link checking.
    runner : ProcessRunner | None, optional
        Process runner for the publish stage.
    problem_stream : TextIO, optional
        Stream receiving the Problem Details document of a failed run.
    """

    step: DocBuildStep
    skip_deploy: bool = False
    client: httpx.Client | None = None
    runner: ProcessRunner | None = None
    problem_stream: TextIO = field(default_factory=lambda: sys.stderr)

    def run(self) -> int:
        """Execute the stages in order.

        Returns
        -------
        int
            ``0`` on success, ``1`` when a stage failed, ``130`` when interrupted.
        """
        start = time.monotonic()
        logger = with_fields(LOGGER, operation="docs", site=self.step.project.site.sitename)
        logger.info("Documentation build started", extra={"status": "started"})
        try:
            exit_code = self._run_stages()
        except DocumentationBuildError as error:
            self._emit_problem(error.problem)
            logger.exception(
                "Documentation build failed",
                extra={"status": "error", "stage": error.stage, **self._elapsed(start)},
            )
            return 1
        except KeyboardInterrupt:
            stage = self.step.failed_stage or "unknown"
            self._emit_problem(
                build_problem_details(
                    ProblemDetailsParams(
                        type=problem_type("cancelled"),
                        title="Documentation build cancelled",
                        status=499,
                        detail="Documentation build interrupted by user",
                        instance=f"urn:styledocs:stage:{stage}",
                        extensions={"stage": stage},
                    )
                )
            )
            logger.warning(
                "Documentation build cancelled",
                extra={"status": "cancelled", "stage": stage, **self._elapsed(start)},
            )
            return 130
        except Exception as exc:
            stage = self.step.failed_stage or "unknown"
            self._emit_problem(
                problem_from_exception(
                    ExceptionProblemDetailsParams(
                        base=ProblemDetailsParams(
                            type=problem_type("stage-failed"),
                            title="Documentation stage failed",
                            status=500,
                            detail="External tool failed",
                            instance=f"urn:styledocs:stage:{stage}",
                        ),
                        exception=exc,
                        extensions={"stage": stage},
                    )
                )
            )
            logger.exception(
                "Documentation build failed",
                extra={"status": "error", "stage": stage, **self._elapsed(start)},
            )
            return 1
        finally:
            self._export_metrics()

        logger.info(
            "Documentation build completed",
            extra={"status": "success", "exit_code": exit_code, **self._elapsed(start)},
        )
        return exit_code

    def _run_stages(self) -> int:
        self.step.prepare()
        self.step.build(client=self.client)
        if self.skip_deploy:
            LOGGER.info(
                "Deploy skipped on request",
                extra={"operation": "publish", "status": "skipped"},
            )
            return 0
        if self.step.project.site.deploy is None:
            LOGGER.info(
                "No deployment target configured",
                extra={"operation": "publish", "status": "skipped"},
            )
            return 0
        self.step.publish(runner=self.runner)
        return 0

    def _emit_problem(self, problem: ProblemDetailsDict) -> None:
        self.problem_stream.write(render_problem(problem) + "\n")
        self.problem_stream.flush()

    @staticmethod
    def _elapsed(start: float) -> dict[str, float]:
        return {"duration_ms": (time.monotonic() - start) * 1000.0}

    @staticmethod
    def _export_metrics() -> None:
        path = get_runtime_settings().metrics_textfile
        if path is not None:
            write_metrics(path)
