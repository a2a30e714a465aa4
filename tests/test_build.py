"""Tests for the MkDocs-backed build stage."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import pytest

from styledocs.build import build, load_mkdocs_config
from styledocs.config import HtmlFormat, LinkCheckConfig, PageEntry, SiteConfig
from styledocs.errors import LinkCheckError
from styledocs.prepare import prepare

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

BROKEN = "https://example.com/broken"


def test_end_to_end_single_page(tmp_path: Path) -> None:
    """Test README -> index.md -> site gives a page titled Guide containing Hello."""
    source = tmp_path / "README.md"
    source.write_text("# Title\nHello", encoding="utf-8")
    dest = tmp_path / "docs" / "src" / "index.md"
    prepare(source, dest)
    config = SiteConfig(
        sitename="Guide",
        docs_dir=dest.parent,
        site_dir=tmp_path / "docs" / "build",
        pages=(PageEntry("Guide", "index.md"),),
    )

    artifact = build(config)

    page = artifact.page("Guide")
    assert page.title == "Guide"
    assert page.source == "index.md"
    assert page.output_path == config.site_dir / "index.html"
    assert "Hello" in page.read_html()
    assert artifact.linkcheck is None
    assert artifact.site_dir == config.site_dir


def test_pages_follow_navigation_order(make_site: Callable[..., SiteConfig]) -> None:
    """Test every configured page is rendered under a directory URL."""
    config = make_site(
        {
            "Home": ("index.md", "# Home\n"),
            "Style": ("style.md", "# Style\nUse four spaces.\n"),
        }
    )

    artifact = build(config)

    assert [page.title for page in artifact.pages] == ["Home", "Style"]
    style = artifact.page("Style")
    assert style.url == "style/"
    assert style.output_path == config.site_dir / "style" / "index.html"
    assert "Use four spaces." in style.read_html()


def test_unknown_page_title_raises(make_site: Callable[..., SiteConfig]) -> None:
    """Test looking up a page that is not in the navigation."""
    artifact = build(make_site({"Home": ("index.md", "# Home\n")}))
    with pytest.raises(KeyError):
        artifact.page("Missing")


def test_clean_build_removes_stale_output(make_site: Callable[..., SiteConfig]) -> None:
    """Test a clean build starts from an empty site directory."""
    config = make_site({"Home": ("index.md", "# Home\n")})
    config.site_dir.mkdir(parents=True)
    stale = config.site_dir / "stale.html"
    stale.write_text("old", encoding="utf-8")

    build(config)

    assert not stale.exists()


def test_favicon_asset_is_copied_and_linked(make_site: Callable[..., SiteConfig]) -> None:
    """Test the configured favicon is copied into the site and used by the pages."""
    config = make_site(
        {"Home": ("index.md", "# Home\n")},
        format=HtmlFormat(assets=("assets/favicon.ico",)),
    )
    (config.docs_dir / "assets").mkdir()
    (config.docs_dir / "assets" / "favicon.ico").write_bytes(b"\x00\x00\x01\x00")

    artifact = build(config)

    assert (config.site_dir / "assets" / "favicon.ico").is_file()
    html = artifact.page("Home").read_html()
    assert 'href="assets/favicon.ico"' in html
    assert "img/favicon.ico" not in html


def test_load_mkdocs_config_applies_canonical(make_site: Callable[..., SiteConfig]) -> None:
    """Test the canonical URL becomes the MkDocs site URL."""
    config = make_site(
        {"Home": ("index.md", "# Home\n")},
        format=HtmlFormat(canonical="https://docs.sciml.ai/SciMLStyle/stable/"),
    )
    mkdocs_config = load_mkdocs_config(config)
    assert mkdocs_config.site_url == "https://docs.sciml.ai/SciMLStyle/stable/"
    assert mkdocs_config.site_name == "Guide"


class TestLinkCheckDuringBuild:
    """Test link checking as part of the build stage."""

    def test_exempt_broken_link_passes(
        self,
        make_site: Callable[..., SiteConfig],
        routed_client: Callable[..., tuple],
    ) -> None:
        """Verify an exempted unreachable link does not fail the build."""
        client, transport = routed_client({})
        config = make_site(
            {"Home": ("index.md", f"# Home\n\n[broken]({BROKEN})\n")},
            linkcheck=LinkCheckConfig(enabled=True, exemptions=(BROKEN,)),
        )

        artifact = build(config, client=client)

        assert artifact.linkcheck is not None
        assert artifact.linkcheck.exempted == (BROKEN,)
        assert transport.calls == []

    def test_removing_exemption_fails_naming_url(
        self,
        make_site: Callable[..., SiteConfig],
        routed_client: Callable[..., tuple],
    ) -> None:
        """Verify the same link fails once it is no longer exempt."""
        client, _ = routed_client({})
        config = make_site(
            {"Home": ("index.md", f"# Home\n\n[broken]({BROKEN})\n")},
            linkcheck=LinkCheckConfig(enabled=True),
        )

        with pytest.raises(LinkCheckError) as excinfo:
            build(config, client=client)

        assert excinfo.value.urls == (BROKEN,)
        assert BROKEN in str(excinfo.value)

    def test_regex_exemption(
        self,
        make_site: Callable[..., SiteConfig],
        routed_client: Callable[..., tuple],
    ) -> None:
        """Verify pattern exemptions cover whole URL families."""
        client, _ = routed_client({"https://example.com/fine": 200})
        config = make_site(
            {
                "Home": (
                    "index.md",
                    "[a](https://example.com/fine) [b](https://private.example.org/x)\n",
                )
            },
            linkcheck=LinkCheckConfig(
                enabled=True, exemptions=(re.compile(r"^https://private\.example\.org/"),)
            ),
        )

        artifact = build(config, client=client)

        assert artifact.linkcheck is not None
        assert artifact.linkcheck.checked == ("https://example.com/fine",)

    def test_links_inside_fenced_code_are_not_checked(
        self,
        make_site: Callable[..., SiteConfig],
        routed_client: Callable[..., tuple],
    ) -> None:
        """Verify a link shown as code on the page is never requested."""
        client, transport = routed_client({})
        page = (
            "# Home\n\n"
            "```julia\n"
            f"# see [docs]({BROKEN})\n"
            "\n"
            "f(x) = x\n"
            "```\n"
        )
        config = make_site({"Home": ("index.md", page)}, linkcheck=LinkCheckConfig(enabled=True))

        artifact = build(config, client=client)

        assert artifact.linkcheck is not None
        assert artifact.linkcheck.checked == ()
        assert transport.calls == []
        assert "[docs]" in artifact.page("Home").read_html()
