"""External link validation for rendered documentation pages.

Links are collected from the Markdown sources of the configured pages (after
rendering them to HTML with Python-Markdown and the site's Markdown
extensions, so inline HTML anchors count and fenced code does not) and checked
one at a time over HTTP. Relative links are left to MkDocs' own validation;
only absolute ``http``/``https`` URLs reach the network.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import TYPE_CHECKING
from urllib.parse import urldefrag, urlsplit

import httpx
import markdown

from styledocs.errors import LinkCheckError, LinkFailure
from styledocs.logging import get_logger, with_fields
from styledocs.settings import DEFAULT_USER_AGENT

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from styledocs.config import LinkCheckConfig, SiteConfig

__all__ = [
    "LinkCheckReport",
    "LinkChecker",
    "collect_site_links",
    "extract_links",
]

LOGGER = get_logger(__name__)

CHECKED_SCHEMES = frozenset({"http", "https"})
# Extensions MkDocs enables for every site.
DEFAULT_MARKDOWN_EXTENSIONS: tuple[str, ...] = ("toc", "tables", "fenced_code")
# Servers that refuse HEAD get the same URL once more with GET.
_METHOD_NOT_SUPPORTED = frozenset({405, 501})


class _LinkCollector(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.links: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        wanted = {"a": "href", "img": "src"}.get(tag)
        if wanted is None:
            return
        for name, value in attrs:
            if name == wanted and value:
                self.links.append(value.strip())


def extract_links(
    markdown_text: str,
    *,
    extensions: Sequence[str] = DEFAULT_MARKDOWN_EXTENSIONS,
    extension_configs: Mapping[str, Mapping[str, object]] | None = None,
) -> list[str]:
    """Return absolute http(s) URLs referenced by ``markdown_text``, in order.

    Fragments are dropped and duplicates removed. Text inside code blocks is
    not a link, exactly as on the rendered page.

    Parameters
    ----------
    markdown_text : str
        Markdown source, possibly containing inline HTML.
    extensions : Sequence[str], optional
        Python-Markdown extensions the site renders with.
    extension_configs : Mapping[str, Mapping[str, object]] | None, optional
        Per-extension options, as in MkDocs' ``mdx_configs``.

    Returns
    -------
    list[str]
        Unique external URLs in first-seen order.
    """
    configs = {name: dict(options) for name, options in (extension_configs or {}).items()}
    html = markdown.markdown(markdown_text, extensions=list(extensions), extension_configs=configs)
    collector = _LinkCollector()
    collector.feed(html)
    collector.close()
    seen: dict[str, None] = {}
    for link in collector.links:
        url, _fragment = urldefrag(link)
        if urlsplit(url).scheme.lower() in CHECKED_SCHEMES:
            seen.setdefault(url, None)
    return list(seen)


def collect_site_links(
    config: SiteConfig,
    *,
    extensions: Sequence[str] = DEFAULT_MARKDOWN_EXTENSIONS,
    extension_configs: Mapping[str, Mapping[str, object]] | None = None,
) -> dict[str, list[str]]:
    """Map every configured page path to the external URLs it references."""
    links: dict[str, list[str]] = {}
    for page in config.pages:
        source = config.page_source(page)
        links[page.path] = extract_links(
            source.read_text(encoding="utf-8"),
            extensions=extensions,
            extension_configs=extension_configs,
        )
    return links


@dataclass(slots=True, frozen=True)
class LinkCheckReport:
    """Outcome of a link check run."""

    checked: tuple[str, ...]
    exempted: tuple[str, ...]
    failures: tuple[LinkFailure, ...]

    @property
    def ok(self) -> bool:
        """Return ``True`` when no link failed."""
        return not self.failures

    def raise_for_failures(self) -> None:
        """Raise :class:`LinkCheckError` when any link failed."""
        if self.failures:
            raise LinkCheckError(self.failures)


@dataclass(slots=True)
class LinkChecker:
    """Check external URLs sequentially, honouring an exemption list.

    Parameters
    ----------
    config : LinkCheckConfig
        Exemptions to honour.
    timeout : float
        Per-request timeout in seconds.
    user_agent : str
        ``User-Agent`` header sent with each request.
    client : httpx.Client | None
        Client to use; when ``None`` a client is created for each :meth:`check`
        call and closed afterwards.
    """

    config: LinkCheckConfig
    timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    client: httpx.Client | None = field(default=None, repr=False)

    def check(self, links: Iterable[tuple[str, str]]) -> LinkCheckReport:
        """Check ``(page, url)`` pairs and return a report.

        Each URL is requested at most once even when several pages cite it.

        Parameters
        ----------
        links : Iterable[tuple[str, str]]
            Page path and URL pairs in document order.

        Returns
        -------
        LinkCheckReport
            Checked, exempted and failed URLs.
        """
        checked: list[str] = []
        exempted: list[str] = []
        failures: list[LinkFailure] = []
        seen: set[str] = set()

        if self.client is not None:
            self._check_all(self.client, links, seen, checked, exempted, failures)
        else:
            with httpx.Client(
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
                follow_redirects=True,
            ) as client:
                self._check_all(client, links, seen, checked, exempted, failures)

        return LinkCheckReport(
            checked=tuple(checked),
            exempted=tuple(exempted),
            failures=tuple(failures),
        )

    def _check_all(
        self,
        client: httpx.Client,
        links: Iterable[tuple[str, str]],
        seen: set[str],
        checked: list[str],
        exempted: list[str],
        failures: list[LinkFailure],
    ) -> None:
        for page, url in links:
            if url in seen:
                continue
            seen.add(url)
            link_logger = with_fields(LOGGER, operation="linkcheck", url=url, page=page)
            if self.config.is_exempt(url):
                exempted.append(url)
                link_logger.debug("Link exempted from check", extra={"status": "skipped"})
                continue
            checked.append(url)
            failure = self._check_one(client, page, url)
            if failure is None:
                link_logger.debug("Link reachable", extra={"status": "success"})
            else:
                failures.append(failure)
                link_logger.warning(
                    "Link check failed",
                    extra={"status": "failure", "reason": failure.reason},
                )

    def _check_one(self, client: httpx.Client, page: str, url: str) -> LinkFailure | None:
        try:
            response = client.head(url, follow_redirects=True)
            if response.status_code in _METHOD_NOT_SUPPORTED:
                response = client.get(url, follow_redirects=True)
        except httpx.HTTPError as exc:
            return LinkFailure(url=url, reason=f"unreachable: {exc}", page=page)
        if response.status_code >= 400:
            return LinkFailure(
                url=url,
                reason=f"HTTP {response.status_code}",
                status_code=response.status_code,
                page=page,
            )
        return None

    def check_site(
        self,
        config: SiteConfig,
        *,
        extensions: Sequence[str] = DEFAULT_MARKDOWN_EXTENSIONS,
        extension_configs: Mapping[str, Mapping[str, object]] | None = None,
    ) -> LinkCheckReport:
        """Check every external link of every page in ``config``."""
        site_links = collect_site_links(
            config, extensions=extensions, extension_configs=extension_configs
        )
        pairs = [(page, url) for page, urls in site_links.items() for url in urls]
        report = self.check(pairs)
        LOGGER.info(
            "Link check finished",
            extra={
                "operation": "linkcheck",
                "status": "success" if report.ok else "failure",
                "checked": len(report.checked),
                "exempted": len(report.exempted),
                "failed": len(report.failures),
            },
        )
        return report
