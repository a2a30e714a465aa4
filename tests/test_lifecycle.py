"""Tests for stage sequencing and the lifecycle runner."""

from __future__ import annotations

import io
import json
from typing import TYPE_CHECKING, Any

import pytest

from styledocs import publish as publish_module
from styledocs.config import DeployTarget, LinkCheckConfig, PageEntry, SiteConfig
from styledocs.errors import LinkCheckError, SourceNotFoundError, StageOrderError
from styledocs.lifecycle import BuildState, DocBuildStep, DocLifecycle
from styledocs.metrics import StageMetrics
from styledocs.project import DocsProject

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


@pytest.fixture
def project(tmp_path: Path) -> DocsProject:
    """Return a one-page project whose README exists."""
    (tmp_path / "README.md").write_text("# Title\nHello\n", encoding="utf-8")
    site = SiteConfig(
        sitename="Guide",
        docs_dir=tmp_path / "docs" / "src",
        site_dir=tmp_path / "docs" / "build",
        pages=(PageEntry("Guide", "index.md"),),
        deploy=DeployTarget(repo="github.com/SciML/SciMLStyle", devbranch="main"),
    )
    return DocsProject(
        root=tmp_path,
        source=tmp_path / "README.md",
        destination=tmp_path / "docs" / "src" / "index.md",
        site=site,
    )


@pytest.fixture
def ghp_calls(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Replace ``ghp_import`` and record the deployed directories."""
    calls: list[str] = []
    monkeypatch.setattr(publish_module, "ghp_import", lambda srcdir, **opts: calls.append(srcdir))
    return calls


def _with_site(project: DocsProject, **overrides: Any) -> DocsProject:
    site = project.site
    options: dict[str, Any] = {
        "sitename": site.sitename,
        "docs_dir": site.docs_dir,
        "site_dir": site.site_dir,
        "pages": site.pages,
        "deploy": site.deploy,
    }
    options.update(overrides)
    return DocsProject(
        root=project.root,
        source=project.source,
        destination=project.destination,
        site=SiteConfig(**options),
    )


class TestDocBuildStep:
    """Test the IDLE -> PREPARED -> BUILT -> PUBLISHED -> IDLE sequence."""

    def test_full_cycle(
        self, project: DocsProject, ghp_calls: list[str], git_runner: Any
    ) -> None:
        """Verify each stage advances the state and publish returns to idle."""
        step = DocBuildStep(project)
        assert step.state is BuildState.IDLE

        step.prepare()
        assert step.state is BuildState.PREPARED
        assert project.destination.read_text(encoding="utf-8") == "# Title\nHello\n"

        artifact = step.build()
        assert step.state is BuildState.BUILT
        assert "Hello" in artifact.page("Guide").read_html()

        receipt = step.publish(runner=git_runner)
        assert receipt.deployed is True
        assert step.state is BuildState.IDLE
        assert step.receipt == receipt
        assert ghp_calls == [str(project.site.site_dir)]

    def test_header_is_applied(self, project: DocsProject) -> None:
        """Verify the project header is prepended to the destination."""
        step = DocBuildStep(
            DocsProject(
                root=project.root,
                source=project.source,
                destination=project.destination,
                site=project.site,
                header="<!-- generated -->\n",
            )
        )
        step.prepare()
        assert project.destination.read_text(encoding="utf-8") == (
            "<!-- generated -->\n# Title\nHello\n"
        )

    def test_build_before_prepare_raises(self, project: DocsProject) -> None:
        """Verify build requires a prepared docs tree."""
        step = DocBuildStep(project)
        with pytest.raises(StageOrderError) as excinfo:
            step.build()
        assert excinfo.value.stage == "build"
        assert excinfo.value.problem["expected_state"] == "prepared"
        assert step.state is BuildState.IDLE
        assert not project.site.site_dir.exists()

    def test_publish_before_build_raises(self, project: DocsProject, git_runner: Any) -> None:
        """Verify publish requires a built site and resets the step."""
        step = DocBuildStep(project)
        step.prepare()
        with pytest.raises(StageOrderError):
            step.publish(runner=git_runner)
        assert step.state is BuildState.IDLE
        assert step.failed_stage == "publish"

    def test_prepare_twice_raises(self, project: DocsProject) -> None:
        """Verify prepare only runs from idle."""
        step = DocBuildStep(project)
        step.prepare()
        with pytest.raises(StageOrderError):
            step.prepare()

    def test_failure_resets_to_idle(self, project: DocsProject) -> None:
        """Verify a failing stage halts and the step can start over."""
        project.source.unlink()
        step = DocBuildStep(project)

        with pytest.raises(SourceNotFoundError):
            step.prepare()
        assert step.state is BuildState.IDLE
        assert step.failed_stage == "prepare"

        project.source.write_text("again\n", encoding="utf-8")
        step.prepare()
        assert step.state is BuildState.PREPARED
        assert step.failed_stage is None

    def test_link_failure_resets_to_idle(
        self,
        project: DocsProject,
        routed_client: Callable[..., tuple],
    ) -> None:
        """Verify a link check failure leaves no built state behind."""
        project.source.write_text("[x](https://example.com/gone)\n", encoding="utf-8")
        step = DocBuildStep(_with_site(project, linkcheck=LinkCheckConfig(enabled=True)))
        client, _ = routed_client({})

        step.prepare()
        with pytest.raises(LinkCheckError):
            step.build(client=client)

        assert step.state is BuildState.IDLE
        assert step.artifact is None

    def test_stage_metrics_recorded(self, project: DocsProject) -> None:
        """Verify stage outcomes are counted."""
        metrics = StageMetrics()
        before_ok = metrics.count("prepare", "success")
        step = DocBuildStep(project, metrics=metrics)

        step.prepare()
        with pytest.raises(StageOrderError):
            step.prepare()

        assert metrics.count("prepare", "success") == before_ok + 1

    def test_publish_without_target_raises(self, project: DocsProject) -> None:
        """Verify a site without a deployment target cannot be published."""
        step = DocBuildStep(_with_site(project, deploy=None))
        step.prepare()
        step.build()
        with pytest.raises(ValueError, match="no deployment target"):
            step.publish()
        assert step.state is BuildState.IDLE


class TestDocLifecycle:
    """Test exit codes and Problem Details emission."""

    def test_success(self, project: DocsProject, ghp_calls: list[str], git_runner: Any) -> None:
        """Verify a complete run exits 0 and writes nothing to the problem stream."""
        stream = io.StringIO()
        lifecycle = DocLifecycle(DocBuildStep(project), runner=git_runner, problem_stream=stream)

        assert lifecycle.run() == 0
        assert stream.getvalue() == ""
        assert len(ghp_calls) == 1

    def test_skip_deploy(self, project: DocsProject, ghp_calls: list[str]) -> None:
        """Verify skip_deploy stops after the build stage."""
        step = DocBuildStep(project)
        lifecycle = DocLifecycle(step, skip_deploy=True, problem_stream=io.StringIO())

        assert lifecycle.run() == 0
        assert step.state is BuildState.BUILT
        assert ghp_calls == []

    def test_missing_source(self, project: DocsProject) -> None:
        """Verify a missing README exits 1 with a prepare-stage problem."""
        project.source.unlink()
        stream = io.StringIO()

        exit_code = DocLifecycle(DocBuildStep(project), problem_stream=stream).run()

        assert exit_code == 1
        problem = json.loads(stream.getvalue())
        assert problem["type"] == "urn:styledocs:problem:source-missing"
        assert problem["stage"] == "prepare"
        assert problem["status"] == 404
        assert not project.destination.exists()

    def test_external_tool_failure_reported_verbatim(
        self, project: DocsProject, git_runner: Any, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Verify deploy errors keep their message and name the stage."""

        def failing(srcdir: str, **opts: Any) -> None:
            message = "remote: Permission denied"
            raise RuntimeError(message)

        monkeypatch.setattr(publish_module, "ghp_import", failing)
        stream = io.StringIO()

        exit_code = DocLifecycle(
            DocBuildStep(project), runner=git_runner, problem_stream=stream
        ).run()

        assert exit_code == 1
        problem = json.loads(stream.getvalue())
        assert problem["stage"] == "publish"
        assert problem["detail"] == "remote: Permission denied"
        assert problem["exception_type"] == "RuntimeError"
        assert problem["instance"] == "urn:styledocs:stage:publish"

    def test_interrupt(
        self, project: DocsProject, git_runner: Any, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Verify an interrupt exits 130."""

        def interrupted(srcdir: str, **opts: Any) -> None:
            raise KeyboardInterrupt

        monkeypatch.setattr(publish_module, "ghp_import", interrupted)
        stream = io.StringIO()
        step = DocBuildStep(project)

        exit_code = DocLifecycle(step, runner=git_runner, problem_stream=stream).run()

        assert exit_code == 130
        assert json.loads(stream.getvalue())["status"] == 499
        assert step.state is BuildState.IDLE

    def test_metrics_textfile(
        self,
        project: DocsProject,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Verify metrics are exported when a textfile path is configured."""
        target = tmp_path / "metrics" / "styledocs.prom"
        monkeypatch.setenv("STYLEDOCS_METRICS_TEXTFILE", str(target))

        DocLifecycle(DocBuildStep(project), skip_deploy=True, problem_stream=io.StringIO()).run()

        text = target.read_text(encoding="utf-8")
        assert 'styledocs_stage_total{stage="prepare",status="success"}' in text
