from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Sequence

from .fs import FilesystemOps
from .shell import PathLike

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComponentSpec:
    """A release binary shipped on the installer medium.

    ``source`` is the asset/file name as downloaded, ``installed`` the name
    it gets under the install bin path, ``repository`` the GitHub repo it is
    released from.
    """

    source: str
    installed: str
    repository: str
    required: bool = True

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "ComponentSpec":
        if not isinstance(raw, dict):
            raise ValueError(f"component entry must be a mapping: {raw!r}")
        source = str(raw.get("source") or raw.get("name") or "")
        if not source:
            raise ValueError(f"component entry without a source name: {raw!r}")
        return cls(
            source=source,
            installed=str(raw.get("installed") or source),
            repository=str(raw.get("repository") or source),
            required=bool(raw.get("required", True)),
        )


class ComponentInstallError(RuntimeError):
    def __init__(self, component: str, message: str) -> None:
        super().__init__(message)
        self.component = component


def install_components(
    fs: FilesystemOps,
    *,
    rootfs: PathLike,
    components_dir: PathLike,
    components: Sequence[ComponentSpec],
    bin_path: str = "/usr/local/bin",
) -> List[str]:
    """Copy component binaries into the rootfs and mark them executable.

    Returns installed names. A missing required component raises
    ComponentInstallError; a missing optional one is skipped.
    """

    logger.info("Installing components into rootfs...")
    bin_dir = Path(rootfs) / bin_path.lstrip("/")
    fs.mkdir_all(bin_dir)

    installed: List[str] = []
    for c in components:
        src = Path(components_dir) / c.source
        dst = bin_dir / c.installed

        if not src.is_file():
            if c.required:
                raise ComponentInstallError(c.source, f"required component missing: {src}")
            logger.info("Skipping optional component: %s", c.source)
            continue

        try:
            fs.copy_file(src, dst)
            fs.make_executable(dst)
        except OSError as e:
            if c.required:
                raise ComponentInstallError(c.source, f"failed to install {c.source}: {e}") from e
            logger.warning("Failed to install optional component %s: %s", c.source, e)
            continue

        logger.info("Installed %s", c.installed)
        installed.append(c.installed)

    return installed
