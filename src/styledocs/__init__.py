"""Build and deploy the style guide documentation site.

The package turns the repository ``README.md`` into a one-page MkDocs site,
checks its external links and publishes it to GitHub Pages. Use
:class:`~styledocs.lifecycle.DocBuildStep` to run the stages programmatically
or the ``styledocs`` command from a checkout.
"""

from __future__ import annotations

from styledocs.build import RenderedPage, SiteArtifact
from styledocs.config import (
    DeployTarget,
    HtmlFormat,
    LinkCheckConfig,
    PageEntry,
    SiteConfig,
)
from styledocs.errors import (
    DestinationWriteError,
    DocumentationBuildError,
    LinkCheckError,
    LinkFailure,
    SourceNotFoundError,
    StageOrderError,
)
from styledocs.lifecycle import BuildState, DocBuildStep, DocLifecycle
from styledocs.project import DocsProject, style_guide_project
from styledocs.publish import PublishReceipt

__all__ = [
    "BuildState",
    "DeployTarget",
    "DestinationWriteError",
    "DocBuildStep",
    "DocLifecycle",
    "DocsProject",
    "DocumentationBuildError",
    "HtmlFormat",
    "LinkCheckConfig",
    "LinkCheckError",
    "LinkFailure",
    "PageEntry",
    "PublishReceipt",
    "RenderedPage",
    "SiteArtifact",
    "SiteConfig",
    "SourceNotFoundError",
    "StageOrderError",
    "style_guide_project",
]
