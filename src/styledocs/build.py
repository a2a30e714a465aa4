"""Build stage: render the site with MkDocs and validate external links.

MkDocs is driven through its Python API the same way ``mkdocs build`` drives
it: the configuration is rendered to YAML, loaded with
:func:`mkdocs.config.load_config`, plugins receive their startup/shutdown
events and :func:`mkdocs.commands.build.build` writes the site. Errors raised
by MkDocs propagate unchanged.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from mkdocs.commands.build import build as mkdocs_build
from mkdocs.config import load_config
from mkdocs.structure.files import File

from styledocs.config import render_mkdocs_yaml
from styledocs.linkcheck import LinkChecker, LinkCheckReport
from styledocs.logging import get_logger, with_fields
from styledocs.settings import get_runtime_settings

if TYPE_CHECKING:
    import httpx
    from mkdocs.config.defaults import MkDocsConfig

    from styledocs.config import SiteConfig

__all__ = ["RenderedPage", "SiteArtifact", "build", "load_mkdocs_config"]

LOGGER = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RenderedPage:
    """One page of the generated site.

    Attributes
    ----------
    title : str
        Navigation label of the page.
    source : str
        Markdown path relative to the docs directory.
    output_path : Path
        HTML file written by the generator.
    url : str
        Site-relative URL of the page.
    """

    title: str
    source: str
    output_path: Path
    url: str

    def read_html(self) -> str:
        """Return the rendered HTML of the page."""
        return self.output_path.read_text(encoding="utf-8")


@dataclass(frozen=True, slots=True)
class SiteArtifact:
    """Generated documentation site."""

    config: SiteConfig
    site_dir: Path
    pages: tuple[RenderedPage, ...]
    linkcheck: LinkCheckReport | None = None

    def page(self, title: str) -> RenderedPage:
        """Return the page whose navigation label is ``title``.

        Raises
        ------
        KeyError
            If no page has that title.
        """
        for page in self.pages:
            if page.title == title:
                return page
        raise KeyError(title)


def load_mkdocs_config(config: SiteConfig) -> MkDocsConfig:
    """Return a validated MkDocs configuration for ``config``.

    Parameters
    ----------
    config : SiteConfig
        Site configuration.

    Returns
    -------
    MkDocsConfig
        Configuration object accepted by :func:`mkdocs.commands.build.build`.
    """
    document = io.StringIO(render_mkdocs_yaml(config))
    config_file_path = str(config.docs_dir.parent / "mkdocs.yml")
    return load_config(config_file=document, config_file_path=config_file_path)


def build(config: SiteConfig, *, client: httpx.Client | None = None) -> SiteArtifact:
    """Render the site for ``config`` and check its external links.

    Parameters
    ----------
    config : SiteConfig
        Site configuration.
    client : httpx.Client | None, optional
        HTTP client used for link checking; by default a client configured from
        the runtime settings is created for the check.

    Returns
    -------
    SiteArtifact
        Description of the generated site.

    Raises
    ------
    LinkCheckError
        If link checking is enabled and a non-exempt external link is unreachable.
    """
    logger = with_fields(LOGGER, operation="build", site_dir=str(config.site_dir))
    _warn_missing_assets(config)

    mkdocs_config = load_mkdocs_config(config)
    dirty = not config.clean
    mkdocs_config.plugins.on_startup(command="build", dirty=dirty)
    try:
        mkdocs_build(mkdocs_config, dirty=dirty)
    finally:
        mkdocs_config.plugins.on_shutdown()

    pages = tuple(
        _rendered_page(config, mkdocs_config, entry.label, entry.path) for entry in config.pages
    )
    logger.info("Site rendered", extra={"page_count": len(pages)})

    report: LinkCheckReport | None = None
    if config.linkcheck.enabled:
        checker = _link_checker(config, client)
        report = checker.check_site(
            config,
            extensions=mkdocs_config.markdown_extensions,
            extension_configs=mkdocs_config.mdx_configs,
        )
        report.raise_for_failures()
    else:
        logger.info("Link check disabled", extra={"status": "skipped"})

    return SiteArtifact(config=config, site_dir=config.site_dir, pages=pages, linkcheck=report)


def _link_checker(config: SiteConfig, client: httpx.Client | None) -> LinkChecker:
    settings = get_runtime_settings()
    return LinkChecker(
        config.linkcheck,
        timeout=settings.linkcheck_timeout,
        user_agent=settings.linkcheck_user_agent,
        client=client,
    )


def _rendered_page(
    config: SiteConfig, mkdocs_config: MkDocsConfig, title: str, source: str
) -> RenderedPage:
    file = File(
        source,
        src_dir=str(config.docs_dir),
        dest_dir=str(config.site_dir),
        use_directory_urls=mkdocs_config.use_directory_urls,
    )
    return RenderedPage(
        title=title,
        source=source,
        output_path=Path(file.abs_dest_path),
        url=file.url,
    )


def _warn_missing_assets(config: SiteConfig) -> None:
    for asset in config.format.assets:
        if not (config.docs_dir / asset).is_file():
            LOGGER.warning(
                "Configured asset is missing from the docs directory",
                extra={"operation": "build", "asset": asset},
            )
