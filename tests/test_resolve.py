"""Tests for release resolution.

HTTP is mocked with respx.
"""

import httpx
import pytest
import respx

from iso_builder.lib.resolve import ReleaseResolver, ResolveError, make_client

API = "https://api.example.com/repos"
RELEASES_URL = f"{API}/limeos-org/installation-wizard/releases"


def release(tag, *, draft=False, assets=()):
    return {
        "tag_name": tag,
        "draft": draft,
        "assets": [{"name": n, "browser_download_url": f"https://dl.example.com/{tag}/{n}"} for n in assets],
    }


@pytest.fixture
def resolver():
    with httpx.Client() as client:
        yield ReleaseResolver(client, api_base=API, org="limeos-org")


class TestResolve:
    @respx.mock
    def test_picks_newest_with_same_major(self, resolver):
        """Should ignore other majors and pick the highest matching tag."""
        respx.get(RELEASES_URL).mock(
            return_value=httpx.Response(
                200,
                json=[
                    release("v2.0.0"),
                    release("v1.4.0", assets=["installation-wizard"]),
                    release("v1.10.1", assets=["installation-wizard"]),
                    release("v1.11.0", draft=True),
                    release("nightly"),
                ],
            )
        )
        r = resolver.resolve("installation-wizard", "1.2.3")
        assert r.tag == "v1.10.1"
        assert r.assets["installation-wizard"].endswith("/v1.10.1/installation-wizard")

    def test_invalid_version(self, resolver):
        with pytest.raises(ResolveError) as excinfo:
            resolver.resolve("installation-wizard", "one.two")
        assert excinfo.value.code == "invalid_version"

    @respx.mock
    def test_network_error(self, resolver):
        respx.get(RELEASES_URL).mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(ResolveError) as excinfo:
            resolver.resolve("installation-wizard", "1.0.0")
        assert excinfo.value.code == "network_error"

    @respx.mock
    def test_http_error(self, resolver):
        respx.get(RELEASES_URL).mock(return_value=httpx.Response(403))
        with pytest.raises(ResolveError) as excinfo:
            resolver.resolve("installation-wizard", "1.0.0")
        assert excinfo.value.code == "network_error"

    @respx.mock
    def test_parse_error(self, resolver):
        respx.get(RELEASES_URL).mock(return_value=httpx.Response(200, content=b"{not json"))
        with pytest.raises(ResolveError) as excinfo:
            resolver.resolve("installation-wizard", "1.0.0")
        assert excinfo.value.code == "parse_error"

    @respx.mock
    def test_unexpected_response(self, resolver):
        respx.get(RELEASES_URL).mock(return_value=httpx.Response(200, json={"message": "Not Found"}))
        with pytest.raises(ResolveError) as excinfo:
            resolver.resolve("installation-wizard", "1.0.0")
        assert excinfo.value.code == "unexpected_response"

    @respx.mock
    def test_no_match(self, resolver):
        respx.get(RELEASES_URL).mock(return_value=httpx.Response(200, json=[release("v2.0.0")]))
        with pytest.raises(ResolveError) as excinfo:
            resolver.resolve("installation-wizard", "1.0.0")
        assert excinfo.value.code == "no_match"


class TestFetchComponent:
    @respx.mock
    def test_downloads_asset(self, resolver, tmp_path):
        respx.get(RELEASES_URL).mock(
            return_value=httpx.Response(200, json=[release("v1.0.2", assets=["installation-wizard"])])
        )
        respx.get("https://dl.example.com/v1.0.2/installation-wizard").mock(
            return_value=httpx.Response(200, content=b"\x7fELF")
        )
        path = resolver.fetch_component("installation-wizard", "installation-wizard", "v1.0.0", tmp_path)
        assert path == tmp_path / "installation-wizard"
        assert path.read_bytes() == b"\x7fELF"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["installation-wizard"]

    @respx.mock
    def test_missing_asset(self, resolver, tmp_path):
        respx.get(RELEASES_URL).mock(return_value=httpx.Response(200, json=[release("v1.0.2")]))
        with pytest.raises(ResolveError) as excinfo:
            resolver.fetch_component("installation-wizard", "installation-wizard", "1.0.0", tmp_path)
        assert excinfo.value.code == "no_match"

    @respx.mock
    def test_failed_download_leaves_nothing(self, resolver, tmp_path):
        respx.get("https://dl.example.com/x").mock(return_value=httpx.Response(500))
        with pytest.raises(ResolveError):
            resolver.download_asset("https://dl.example.com/x", tmp_path / "x")
        assert list(tmp_path.iterdir()) == []


@respx.mock
def test_client_sends_user_agent():
    route = respx.get(RELEASES_URL).mock(return_value=httpx.Response(200, json=[release("v1.0.0")]))
    with make_client("limeos-iso-builder/1.0") as client:
        ReleaseResolver(client, api_base=API).resolve("installation-wizard", "1.0.0")
    assert route.calls.last.request.headers["User-Agent"] == "limeos-iso-builder/1.0"
