from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .build_config import BuildConfig
from .lib.cache import ArtifactCache
from .lib.command import CommandRunner
from .lib.fs import FilesystemOps
from .lib.resolve import ReleaseResolver
from .version import strip_version_prefix


@dataclass(frozen=True)
class BuildCtx:
    """Everything a phase needs: config, version, scratch root and services."""

    cfg: BuildConfig
    version: str
    build_dir: Path
    output_dir: Path
    runner: CommandRunner
    fs: FilesystemOps
    resolver: Optional[ReleaseResolver] = None
    cache: Optional[ArtifactCache] = None

    @property
    def components_dir(self) -> Path:
        return self.build_dir / "components"

    @property
    def base_rootfs(self) -> Path:
        return self.build_dir / "base"

    @property
    def payload_rootfs(self) -> Path:
        return self.build_dir / "payload"

    @property
    def carrier_rootfs(self) -> Path:
        return self.build_dir / "carrier"

    @property
    def payload_tarball(self) -> Path:
        return self.build_dir / "payload.tar.gz"

    @property
    def staging_dir(self) -> Path:
        # Beside the carrier so it never ends up inside the squashfs.
        return self.carrier_rootfs.parent / "staging-iso"

    @property
    def iso_path(self) -> Path:
        return self.output_dir / f"{self.cfg.iso_prefix}-{strip_version_prefix(self.version)}.iso"
