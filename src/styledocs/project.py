"""Repository layout and the site configuration of the style guide.

The configuration below is a literal: the guide has one page, generated from
the repository README, and is deployed to GitHub Pages from ``main``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from styledocs.config import (
    DeployTarget,
    HtmlFormat,
    LinkCheckConfig,
    PageEntry,
    SiteConfig,
)

__all__ = [
    "DocsProject",
    "discover_root",
    "style_guide_project",
]

SITE_NAME = "SciML Style Guide for Julia"
AUTHORS = "Chris Rackauckas"
CANONICAL_URL = "https://docs.sciml.ai/SciMLStyle/stable/"
DEPLOY_REPO = "github.com/SciML/SciMLStyle"
DEV_BRANCH = "main"


@dataclass(frozen=True, slots=True)
class DocsProject:
    """Where the prepare stage reads and writes, plus the site configuration.

    Attributes
    ----------
    root : Path
        Repository root.
    source : Path
        Source document.
    destination : Path
        Derived document inside the docs source tree.
    site : SiteConfig
        Site configuration handed to the build stage.
    header : str | None
        Text prepended to the destination, if any.
    """

    root: Path
    source: Path
    destination: Path
    site: SiteConfig
    header: str | None = None


def discover_root(start: Path | None = None) -> Path:
    """Return the nearest ancestor of ``start`` containing ``.git``.

    Falls back to the current working directory when no repository is found.
    """
    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / ".git").exists():
            return candidate
    return Path.cwd()


def style_guide_project(root: Path) -> DocsProject:
    """Return the build configuration of the style guide rooted at ``root``."""
    docs = root / "docs"
    site = SiteConfig(
        sitename=SITE_NAME,
        authors=AUTHORS,
        docs_dir=docs / "src",
        site_dir=docs / "build",
        pages=(PageEntry(SITE_NAME, "index.md"),),
        clean=True,
        strict=True,
        warn_only=frozenset({"cross_references"}),
        linkcheck=LinkCheckConfig(enabled=True),
        format=HtmlFormat(assets=("assets/favicon.ico",), canonical=CANONICAL_URL),
        deploy=DeployTarget(repo=DEPLOY_REPO, devbranch=DEV_BRANCH),
    )
    return DocsProject(
        root=root,
        source=root / "README.md",
        destination=docs / "src" / "index.md",
        site=site,
    )
