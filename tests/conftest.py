"""Shared pytest fixtures for the documentation build tests.

This module provides reusable fixtures for:
- Isolated runtime settings (no ``STYLEDOCS_*`` leakage between tests)
- Small site configurations rooted in ``tmp_path``
- ``httpx`` clients backed by a routing table instead of the network
- A fake process runner for the ``git`` queries of the publish stage
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
import pytest

from styledocs.config import PageEntry, SiteConfig
from styledocs.process import ToolRunResult
from styledocs.settings import reset_runtime_settings

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping, Sequence
    from pathlib import Path


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Clear ``STYLEDOCS_*`` variables and the settings cache around each test."""
    for key in list(os.environ):
        if key.startswith("STYLEDOCS_"):
            monkeypatch.delenv(key, raising=False)
    reset_runtime_settings()
    yield
    reset_runtime_settings()


@pytest.fixture
def make_site(tmp_path: Path) -> Callable[..., SiteConfig]:
    """Return a factory writing pages into ``tmp_path/docs/src`` and configuring a site.

    Parameters passed as ``pages`` map navigation labels to ``(path, markdown)``.
    Remaining keyword arguments are forwarded to :class:`SiteConfig`.
    """

    def factory(
        pages: Mapping[str, tuple[str, str]] | None = None, **overrides: object
    ) -> SiteConfig:
        docs_dir = tmp_path / "docs" / "src"
        docs_dir.mkdir(parents=True, exist_ok=True)
        entries: list[PageEntry] = []
        for label, (path, text) in (pages or {}).items():
            target = docs_dir / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
            entries.append(PageEntry(label, path))
        options: dict[str, object] = {
            "sitename": "Guide",
            "docs_dir": docs_dir,
            "site_dir": tmp_path / "docs" / "build",
            "pages": tuple(entries),
        }
        options.update(overrides)
        return SiteConfig(**options)  # type: ignore[arg-type]

    return factory


@dataclass(slots=True)
class RoutedTransport:
    """Answer requests from a ``{url: status}`` table and record every call.

    Unknown URLs answer 404. A status of ``None`` raises a connection error.
    """

    routes: dict[str, int | None]
    head_status: dict[str, int] = field(default_factory=dict)
    calls: list[tuple[str, str]] = field(default_factory=list)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append((request.method, url))
        if request.method == "HEAD" and url in self.head_status:
            return httpx.Response(self.head_status[url])
        if url not in self.routes:
            return httpx.Response(404)
        status = self.routes[url]
        if status is None:
            message = "connection refused"
            raise httpx.ConnectError(message, request=request)
        return httpx.Response(status)


@pytest.fixture
def routed_client() -> Iterator[Callable[..., tuple[httpx.Client, RoutedTransport]]]:
    """Return a factory creating an ``httpx.Client`` over a :class:`RoutedTransport`."""
    clients: list[httpx.Client] = []

    def factory(
        routes: Mapping[str, int | None], head_status: Mapping[str, int] | None = None
    ) -> tuple[httpx.Client, RoutedTransport]:
        transport = RoutedTransport(dict(routes), dict(head_status or {}))
        client = httpx.Client(transport=httpx.MockTransport(transport))
        clients.append(client)
        return client, transport

    yield factory
    for client in clients:
        client.close()


@dataclass(slots=True)
class FakeGitRunner:
    """Stand-in for :class:`~styledocs.process.ProcessRunner` answering git queries."""

    branch: str = "main"
    sha: str = "0123456789abcdef0123456789abcdef01234567"
    remote_branches: set[str] = field(default_factory=set)
    commands: list[tuple[str, ...]] = field(default_factory=list)

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        check: bool = False,
    ) -> ToolRunResult:
        args = tuple(command)
        self.commands.append(args)
        if args[1] == "ls-remote":
            ref = args[-1]
            known = ref.removeprefix("refs/heads/") in self.remote_branches
            stdout = f"{self.sha}\t{ref}\n" if known else ""
        elif args[1] == "fetch":
            stdout = ""
        elif args[-2:] == ("--abbrev-ref", "HEAD"):
            stdout = f"{self.branch}\n"
        elif args[-1] == "HEAD":
            stdout = f"{self.sha}\n"
        else:
            message = f"unexpected command {args!r}"
            raise AssertionError(message)
        return ToolRunResult(
            command=args, returncode=0, stdout=stdout, stderr="", duration_seconds=0.0
        )


@pytest.fixture
def git_runner() -> FakeGitRunner:
    """Return a fake git runner on ``main``."""
    return FakeGitRunner()
