"""GitHub release resolution for component binaries.

For a build version ``X.Y.Z`` each component is taken from the newest
published release of its repository that shares the major version ``X``.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from ..version import InvalidVersionError, compare_versions, extract_major_version, parse_version

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.github.com/repos"
DEFAULT_ORG = "limeos-org"
DEFAULT_USER_AGENT = "limeos-iso-builder/1.0"

# Timeout for API requests (seconds)
API_TIMEOUT = 30

# Timeout for asset downloads (seconds)
DOWNLOAD_TIMEOUT = 600

DOWNLOAD_CHUNK_SIZE = 64 * 1024


class ResolveError(Exception):
    """Raised when a component release cannot be resolved or fetched.

    Codes: ``invalid_version``, ``network_error``, ``parse_error``,
    ``unexpected_response``, ``no_match``.
    """

    def __init__(self, message: str, code: str = "no_match") -> None:
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class Release:
    tag: str
    assets: Dict[str, str] = field(default_factory=dict)


def make_client(user_agent: str = DEFAULT_USER_AGENT) -> httpx.Client:
    return httpx.Client(
        headers={"User-Agent": user_agent, "Accept": "application/vnd.github+json"},
        follow_redirects=True,
    )


class ReleaseResolver:
    def __init__(
        self,
        client: httpx.Client,
        *,
        api_base: str = DEFAULT_API_BASE,
        org: str = DEFAULT_ORG,
    ) -> None:
        self.client = client
        self.api_base = api_base.rstrip("/")
        self.org = org

    def releases_url(self, repository: str) -> str:
        return f"{self.api_base}/{self.org}/{repository}/releases"

    def _fetch_releases(self, repository: str) -> List[Any]:
        url = self.releases_url(repository)
        logger.debug("Fetching releases from %s", url)
        try:
            response = self.client.get(url, timeout=API_TIMEOUT)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ResolveError(
                f"HTTP error fetching {url}: {e.response.status_code}",
                code="network_error",
            ) from e
        except httpx.RequestError as e:
            raise ResolveError(f"Network error fetching {url}: {e}", code="network_error") from e

        try:
            data = response.json()
        except ValueError as e:
            raise ResolveError(f"Invalid JSON from {url}", code="parse_error") from e

        if not isinstance(data, list):
            raise ResolveError(f"Expected a list of releases from {url}", code="unexpected_response")
        return data

    def resolve(self, repository: str, version: str) -> Release:
        """Return the newest release of ``repository`` with the same major version."""

        try:
            major = extract_major_version(version)
        except InvalidVersionError as e:
            raise ResolveError(str(e), code="invalid_version") from e

        best: Optional[Release] = None
        for entry in self._fetch_releases(repository):
            if not isinstance(entry, dict):
                raise ResolveError(f"Unexpected release entry in {repository}", code="unexpected_response")
            if entry.get("draft"):
                continue
            tag = entry.get("tag_name")
            if not isinstance(tag, str):
                continue
            try:
                if parse_version(tag)[0] != major:
                    continue
            except InvalidVersionError:
                continue
            if best is not None and compare_versions(tag, best.tag) <= 0:
                continue

            assets = {}
            for a in entry.get("assets") or []:
                if isinstance(a, dict) and a.get("name") and a.get("browser_download_url"):
                    assets[str(a["name"])] = str(a["browser_download_url"])
            best = Release(tag=tag, assets=assets)

        if best is None:
            raise ResolveError(
                f"No release of {repository} matches major version {major}",
                code="no_match",
            )
        logger.info("Resolved %s %s -> %s", repository, version, best.tag)
        return best

    def download_asset(self, url: str, dest_path: Path) -> Path:
        """Stream ``url`` into ``dest_path`` via a temporary file."""

        logger.info("Downloading %s to %s", url, dest_path)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{dest_path.name}.", dir=str(dest_path.parent))
        try:
            with os.fdopen(fd, "wb") as f:
                with self.client.stream("GET", url, timeout=DOWNLOAD_TIMEOUT) as response:
                    response.raise_for_status()
                    for chunk in response.iter_bytes(DOWNLOAD_CHUNK_SIZE):
                        f.write(chunk)
            os.replace(tmp_name, dest_path)
        except httpx.HTTPStatusError as e:
            raise ResolveError(
                f"HTTP error downloading {url}: {e.response.status_code}",
                code="network_error",
            ) from e
        except httpx.RequestError as e:
            raise ResolveError(f"Network error downloading {url}: {e}", code="network_error") from e
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
        return dest_path

    def fetch_component(self, repository: str, asset_name: str, version: str, dest_dir: Path) -> Path:
        release = self.resolve(repository, version)
        url = release.assets.get(asset_name)
        if url is None:
            raise ResolveError(
                f"Release {release.tag} of {repository} has no asset named {asset_name}",
                code="no_match",
            )
        return self.download_asset(url, dest_dir / asset_name)
