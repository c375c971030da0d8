"""Artifact cache for rootfs snapshots.

Layout under the cache root:

- ``<phase>.tar.gz``         gzip tarball of a finished rootfs
- ``<phase>.tar.gz.sha256``  digest of the tarball, published before it
- ``apt-archives/``          shared .deb cache, bind-mounted into chroots
- ``bios-packages/``, ``efi-packages/``  bundled bootloader .debs

An entry exists only once its tarball has been renamed into place, so a
crash mid-save never leaves something that looks like a valid entry.
"""

from __future__ import annotations

import contextlib
import hashlib
import logging
import os
from pathlib import Path
from typing import Iterator, List

from ..errors import CacheError
from .command import CommandRunner
from .fs import FilesystemOps
from .shell import PathLike

logger = logging.getLogger(__name__)

PACKAGE_CACHE_SUBDIR = "apt-archives"
ROOTFS_APT_ARCHIVES = "var/cache/apt/archives"

CHUNK_SIZE = 64 * 1024


def compute_file_sha256(path: PathLike, chunk_size: int = CHUNK_SIZE) -> str:
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


class ArtifactCache:
    def __init__(
        self,
        root: PathLike,
        *,
        runner: CommandRunner,
        fs: FilesystemOps,
        verify: bool = True,
    ) -> None:
        self.root = Path(root)
        self.runner = runner
        self.fs = fs
        self.verify = verify

    def init(self) -> None:
        self.fs.mkdir_all(self.root)
        self.fs.mkdir_all(self.package_cache_dir)

    def entry_path(self, name: str) -> Path:
        if not name or "/" in name or name.startswith("."):
            raise CacheError(f"invalid cache entry name: {name!r}")
        return self.root / f"{name}.tar.gz"

    def digest_path(self, name: str) -> Path:
        return self.root / f"{name}.tar.gz.sha256"

    def has_entry(self, name: str) -> bool:
        return self.entry_path(name).is_file()

    def save(self, source_dir: PathLike, name: str) -> Path:
        """Archive ``source_dir`` as entry ``name``.

        The tarball is built under a temporary name in the cache root and
        only renamed to its final name after its digest has been written.
        """

        final = self.entry_path(name)
        tmp = self.root / f".{name}.tar.gz.tmp-{os.getpid()}"
        if not os.path.isdir(source_dir):
            raise CacheError(f"cannot cache {name}: {source_dir} is not a directory")

        logger.info("Saving %s to cache (%s)", name, final)
        self.fs.mkdir_all(self.root)
        try:
            r = self.runner.run(
                [
                    "tar",
                    "--numeric-owner",
                    "--sparse",
                    "-czf",
                    str(tmp),
                    "-C",
                    os.fspath(source_dir),
                    ".",
                ]
            )
            if r.returncode != 0 or not tmp.is_file():
                raise CacheError(f"tar failed while caching {name} (exit {r.returncode})")

            digest = compute_file_sha256(tmp)
            digest_tmp = self.root / f".{name}.tar.gz.sha256.tmp-{os.getpid()}"
            digest_tmp.write_text(f"{digest}  {final.name}\n", encoding="utf-8")
            os.replace(digest_tmp, self.digest_path(name))
            os.replace(tmp, final)
        except OSError as e:
            raise CacheError(f"failed to cache {name}: {e}") from e
        finally:
            if tmp.exists():
                tmp.unlink()

        logger.info("Cached %s (sha256 %s...)", name, digest[:16])
        return final

    def _expected_digest(self, name: str) -> str | None:
        p = self.digest_path(name)
        if not p.is_file():
            return None
        text = p.read_text(encoding="utf-8").strip()
        return text.split()[0].lower() if text else None

    def restore(self, name: str, dest_dir: PathLike) -> None:
        """Extract entry ``name`` into ``dest_dir``.

        On any failure ``dest_dir`` is removed before CacheError is raised.
        """

        src = self.entry_path(name)
        if not src.is_file():
            raise CacheError(f"no cache entry for {name}")

        logger.info("Restoring %s from cache (%s)", name, src)
        try:
            if self.verify:
                expected = self._expected_digest(name)
                if expected is None:
                    logger.warning("No digest recorded for cache entry %s, skipping verification", name)
                else:
                    actual = compute_file_sha256(src)
                    if actual != expected:
                        raise CacheError(
                            f"cache entry {name} is corrupt: expected {expected[:16]}..., got {actual[:16]}..."
                        )

            self.fs.mkdir_all(dest_dir)
            r = self.runner.run(
                ["tar", "--numeric-owner", "-xzf", str(src), "-C", os.fspath(dest_dir)]
            )
            if r.returncode != 0:
                raise CacheError(f"tar failed while restoring {name} (exit {r.returncode})")
        except (CacheError, OSError) as e:
            self.fs.remove_all(dest_dir)
            if isinstance(e, CacheError):
                raise
            raise CacheError(f"failed to restore {name}: {e}") from e

    # Shared package cache

    @property
    def package_cache_dir(self) -> Path:
        return self.root / PACKAGE_CACHE_SUBDIR

    def mount_shared_package_cache(self, rootfs: PathLike) -> None:
        target = Path(rootfs) / ROOTFS_APT_ARCHIVES
        self.fs.mkdir_all(self.package_cache_dir)
        self.fs.mkdir_all(target)
        r = self.runner.run(["mount", "--bind", str(self.package_cache_dir), str(target)])
        if r.returncode != 0:
            raise CacheError(f"failed to bind-mount package cache at {target}")
        logger.info("Mounted package cache at %s", target)

    def unmount_shared_package_cache(self, rootfs: PathLike) -> bool:
        target = Path(rootfs) / ROOTFS_APT_ARCHIVES
        r = self.runner.run(["umount", str(target)])
        if r.returncode != 0:
            logger.warning("Failed to unmount package cache at %s", target)
            return False
        return True

    @contextlib.contextmanager
    def shared_package_cache(self, rootfs: PathLike) -> Iterator[bool]:
        """Bind the package cache into ``rootfs`` for the duration.

        Yields whether the mount succeeded; a failed mount only costs
        download time, so the build carries on without it.
        """

        try:
            self.mount_shared_package_cache(rootfs)
        except (CacheError, OSError) as e:
            logger.warning("Continuing without package cache: %s", e)
            yield False
            return

        try:
            yield True
        finally:
            self.unmount_shared_package_cache(rootfs)

    # Bundled .deb sets

    def _debs(self, directory: Path) -> List[Path]:
        if not directory.is_dir():
            return []
        return sorted(directory.glob("*.deb"))

    def has_packages(self, subdir: str) -> bool:
        return bool(self._debs(self.root / subdir))

    def load_packages(self, subdir: str, dest_dir: PathLike) -> int:
        debs = self._debs(self.root / subdir)
        self.fs.mkdir_all(dest_dir)
        for deb in debs:
            self.fs.copy_file(deb, Path(dest_dir) / deb.name)
        return len(debs)

    def store_packages(self, src_dir: PathLike, subdir: str) -> int:
        debs = self._debs(Path(src_dir))
        dest = self.root / subdir
        self.fs.mkdir_all(dest)
        for deb in debs:
            self.fs.copy_file(deb, dest / deb.name)
        return len(debs)
