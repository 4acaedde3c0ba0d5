"""Tests for preview handles and the sandbox policy."""

from dataclasses import replace

import pytest

from aichat_builder.core import Project
from aichat_builder.preview import (
    DEVICE_PRESETS,
    SANDBOX_HEADERS,
    SANDBOX_POLICY,
    HandleRegistry,
    PreviewRenderer,
)


@pytest.fixture
def registry():
    return HandleRegistry()


@pytest.fixture
def renderer(registry):
    return PreviewRenderer(registry)


@pytest.fixture
def page():
    return Project(id="p1", filename="landing", content="<html><body>v1</body></html>")


class TestPreviewRenderer:
    def test_get_handle_issues_handle(self, renderer, registry, page):
        handle = renderer.get_handle(page)
        assert handle.project_id == "p1"
        assert registry.resolve(handle.token) == page.content
        assert handle.url == f"/preview/{handle.token}"

    def test_same_content_keeps_handle(self, renderer, registry, page):
        first = renderer.get_handle(page)
        second = renderer.get_handle(replace(page))
        assert first is second
        assert registry.created == 1

    def test_content_change_replaces_handle(self, renderer, registry, page):
        first = renderer.get_handle(page)
        second = renderer.get_handle(replace(page, content="<html><body>v2</body></html>"))
        assert first.token != second.token
        assert registry.resolve(first.token) is None
        assert registry.resolve(second.token).endswith("v2</body></html>")
        assert (registry.created, registry.released) == (2, 1)

    def test_other_project_replaces_handle(self, renderer, registry, page):
        renderer.get_handle(page)
        renderer.get_handle(Project(id="p2", filename="other", content=page.content))
        assert len(registry) == 1
        assert renderer.handle.project_id == "p2"

    def test_refresh_always_reissues(self, renderer, registry, page):
        first = renderer.get_handle(page)
        second = renderer.refresh()
        assert first.token != second.token
        assert len(registry) == 1

    def test_refresh_without_project(self, renderer):
        assert renderer.refresh() is None

    def test_device_change_keeps_handle(self, renderer, registry, page):
        handle = renderer.get_handle(page)
        preset = renderer.set_device("mobile")
        assert (preset.width, preset.height) == (375, 667)
        assert renderer.handle is handle
        assert registry.created == 1

    def test_unknown_device(self, renderer):
        with pytest.raises(ValueError):
            renderer.set_device("watch")

    def test_close_releases(self, renderer, registry, page):
        renderer.get_handle(page)
        renderer.close()
        assert renderer.refresh() is None
        assert renderer.handle is None
        assert len(registry) == 0

    def test_every_creation_paired_with_release_by_close(self, renderer, registry, page):
        renderer.get_handle(page)
        renderer.refresh()
        renderer.get_handle(replace(page, content="changed"))
        renderer.close()
        renderer.close()
        assert registry.created == registry.released == 3
        assert len(registry) == 0

    def test_iframe_attributes(self, renderer, page):
        assert renderer.iframe_attributes() is None
        renderer.get_handle(page)
        renderer.set_device("tablet")
        attrs = renderer.iframe_attributes()
        assert attrs["sandbox"] == SANDBOX_POLICY
        assert attrs["src"] == renderer.handle.url
        assert (attrs["width"], attrs["height"]) == (768, 1024)
        assert attrs["title"] == "Preview of landing"


class TestSandboxPolicy:
    def test_no_same_origin_or_navigation(self):
        tokens = SANDBOX_POLICY.split()
        assert "allow-scripts" in tokens
        assert "allow-forms" in tokens
        assert "allow-same-origin" not in tokens
        assert not any(t.startswith("allow-top-navigation") for t in tokens)

    def test_csp_header_matches_policy(self):
        assert SANDBOX_HEADERS["Content-Security-Policy"] == f"sandbox {SANDBOX_POLICY}"

    def test_presets(self):
        assert set(DEVICE_PRESETS) == {"mobile", "tablet", "desktop"}
        assert DEVICE_PRESETS["desktop"].width == 1200
