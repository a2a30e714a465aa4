"""Typed configuration objects for the documentation site.

This module provides frozen dataclasses describing the static site: metadata,
pages, link checking, output format and deployment target. A configuration is
created once per run and never mutated; :func:`to_mkdocs_config` and
:func:`render_mkdocs_yaml` translate it into the configuration MkDocs reads.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any
from urllib.parse import urlsplit

import yaml

__all__ = [
    "ICON_SUFFIXES",
    "WARN_ONLY_CATEGORIES",
    "DeployTarget",
    "Exemption",
    "HtmlFormat",
    "LinkCheckConfig",
    "PageEntry",
    "SiteConfig",
    "render_mkdocs_yaml",
    "to_mkdocs_config",
]

Exemption = str | re.Pattern[str]

WARN_ONLY_CATEGORIES = frozenset({"cross_references", "nav"})
ICON_SUFFIXES = frozenset({".ico", ".png", ".svg"})

# MkDocs validation levels applied when a category is warn-only. Under strict
# mode every "warn" fails the build, "info" never does.
_WARN_ONLY_VALIDATION: dict[str, dict[str, dict[str, str]]] = {
    "cross_references": {"links": {"not_found": "info", "anchors": "info"}},
    "nav": {"nav": {"not_found": "info", "omitted_files": "info"}},
}


@dataclass(frozen=True, slots=True)
class PageEntry:
    """One navigation entry: a label and a Markdown path relative to ``docs_dir``.

    Attributes
    ----------
    label : str
        Title shown in the navigation and used as the page title.
    path : str
        POSIX path of the Markdown source relative to the docs directory.
    """

    label: str
    path: str

    def __post_init__(self) -> None:
        """Validate the entry after initialization."""
        if not self.label.strip():
            msg = "page label must be a non-empty string"
            raise ValueError(msg)
        pure = PurePosixPath(self.path)
        if pure.is_absolute() or ".." in pure.parts:
            msg = f"page path must be relative to the docs directory, got {self.path!r}"
            raise ValueError(msg)
        if pure.suffix.lower() != ".md":
            msg = f"page path must point at a Markdown file, got {self.path!r}"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class LinkCheckConfig:
    """External link checking options.

    Attributes
    ----------
    enabled : bool
        Whether external links are checked after the site is rendered.
    exemptions : tuple[Exemption, ...]
        URLs skipped by the checker. Strings match exactly; compiled patterns
        match when :meth:`re.Pattern.search` finds them in the URL.
    """

    enabled: bool = False
    exemptions: tuple[Exemption, ...] = ()

    def is_exempt(self, url: str) -> bool:
        """Return ``True`` when ``url`` must not be checked."""
        for exemption in self.exemptions:
            if isinstance(exemption, re.Pattern):
                if exemption.search(url):
                    return True
            elif exemption == url:
                return True
        return False


@dataclass(frozen=True, slots=True)
class HtmlFormat:
    """HTML output options.

    Attributes
    ----------
    assets : tuple[str, ...]
        Files relative to the docs directory to attach to every page: ``.css``
        files become stylesheets, ``.js`` files scripts and icons the favicon.
    canonical : str | None
        Canonical base URL of the published site.
    theme : str
        MkDocs theme name.
    """

    assets: tuple[str, ...] = ()
    canonical: str | None = None
    theme: str = "mkdocs"

    def __post_init__(self) -> None:
        """Validate the canonical URL after initialization."""
        if self.canonical is not None:
            parts = urlsplit(self.canonical)
            if parts.scheme not in {"http", "https"} or not parts.netloc:
                msg = f"canonical must be an absolute http(s) URL, got {self.canonical!r}"
                raise ValueError(msg)

    @property
    def stylesheets(self) -> tuple[str, ...]:
        """Return the CSS assets."""
        return tuple(asset for asset in self.assets if asset.lower().endswith(".css"))

    @property
    def scripts(self) -> tuple[str, ...]:
        """Return the JavaScript assets."""
        return tuple(asset for asset in self.assets if asset.lower().endswith(".js"))

    @property
    def favicon(self) -> str | None:
        """Return the first icon asset, if any."""
        for asset in self.assets:
            if PurePosixPath(asset).suffix.lower() in ICON_SUFFIXES:
                return asset
        return None


@dataclass(frozen=True, slots=True)
class DeployTarget:
    """Where the built site is published.

    Attributes
    ----------
    repo : str
        Repository identifier such as ``github.com/org/repo``, or a full git URL.
    branch : str
        Branch receiving the rendered site.
    devbranch : str | None
        Only deploy when this branch is checked out; ``None`` deploys from any branch.
    """

    repo: str
    branch: str = "gh-pages"
    devbranch: str | None = "main"

    def __post_init__(self) -> None:
        """Validate identifiers after initialization."""
        if not self.repo.strip():
            msg = "deploy repo must be a non-empty string"
            raise ValueError(msg)
        if not self.branch.strip():
            msg = "deploy branch must be a non-empty string"
            raise ValueError(msg)

    @property
    def remote_url(self) -> str:
        """Return a URL ``git push`` accepts for :attr:`repo`."""
        if "://" in self.repo or self.repo.startswith("git@"):
            return self.repo
        repo = self.repo.removesuffix("/")
        if not repo.endswith(".git"):
            repo = f"{repo}.git"
        return f"https://{repo}"


@dataclass(frozen=True, slots=True)
class SiteConfig:
    """Complete static-site configuration for one build.

    Attributes
    ----------
    sitename : str
        Site title.
    docs_dir : Path
        Directory holding the Markdown sources.
    site_dir : Path
        Directory receiving the rendered site.
    authors : str
        Author string.
    pages : tuple[PageEntry, ...]
        Ordered navigation.
    clean : bool
        Rebuild the output directory from scratch.
    strict : bool
        Treat generator warnings as failures.
    warn_only : frozenset[str]
        Warning categories that never fail a strict build.
    linkcheck : LinkCheckConfig
        External link checking options.
    format : HtmlFormat
        HTML output options.
    deploy : DeployTarget | None
        Publishing target; ``None`` disables publishing.
    """

    sitename: str
    docs_dir: Path
    site_dir: Path
    authors: str = ""
    pages: tuple[PageEntry, ...] = ()
    clean: bool = True
    strict: bool = True
    warn_only: frozenset[str] = frozenset()
    linkcheck: LinkCheckConfig = field(default_factory=LinkCheckConfig)
    format: HtmlFormat = field(default_factory=HtmlFormat)
    deploy: DeployTarget | None = None

    def __post_init__(self) -> None:
        """Validate configuration parameters after initialization."""
        if not self.sitename.strip():
            msg = "sitename must be a non-empty string"
            raise ValueError(msg)
        unknown = set(self.warn_only) - WARN_ONLY_CATEGORIES
        if unknown:
            msg = f"warn_only must be a subset of {sorted(WARN_ONLY_CATEGORIES)}, got {sorted(unknown)}"
            raise ValueError(msg)
        paths = [page.path for page in self.pages]
        if len(paths) != len(set(paths)):
            msg = "pages must not reference the same Markdown file twice"
            raise ValueError(msg)
        docs_dir = self.docs_dir.resolve()
        site_dir = self.site_dir.resolve()
        if docs_dir == site_dir or docs_dir in site_dir.parents or site_dir in docs_dir.parents:
            msg = "site_dir and docs_dir must not contain each other"
            raise ValueError(msg)

    def page_source(self, page: PageEntry) -> Path:
        """Return the filesystem path of ``page``'s Markdown source."""
        return self.docs_dir / page.path


def to_mkdocs_config(config: SiteConfig) -> dict[str, Any]:
    """Return the MkDocs configuration mapping for ``config``.

    Parameters
    ----------
    config : SiteConfig
        Site configuration.

    Returns
    -------
    dict[str, Any]
        Plain mapping suitable for YAML serialisation and ``mkdocs.config.load_config``.
    """
    theme: dict[str, Any] = {"name": config.format.theme}
    if config.format.favicon is not None:
        theme["favicon"] = config.format.favicon

    mapping: dict[str, Any] = {
        "site_name": config.sitename,
        "docs_dir": str(config.docs_dir),
        "site_dir": str(config.site_dir),
        "nav": [{page.label: page.path} for page in config.pages],
        "theme": theme,
        "strict": config.strict,
        "use_directory_urls": True,
    }
    if config.authors:
        mapping["site_author"] = config.authors
    if config.format.canonical is not None:
        mapping["site_url"] = config.format.canonical
    if config.format.stylesheets:
        mapping["extra_css"] = list(config.format.stylesheets)
    if config.format.scripts:
        mapping["extra_javascript"] = list(config.format.scripts)

    validation: dict[str, dict[str, str]] = {}
    for category in sorted(config.warn_only):
        for section, levels in _WARN_ONLY_VALIDATION[category].items():
            validation.setdefault(section, {}).update(levels)
    if validation:
        mapping["validation"] = validation
    return mapping


def render_mkdocs_yaml(config: SiteConfig) -> str:
    """Return ``config`` rendered as an ``mkdocs.yml`` document."""
    return yaml.safe_dump(to_mkdocs_config(config), sort_keys=False, allow_unicode=True)
