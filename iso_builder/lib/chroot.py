from __future__ import annotations

import contextlib
import logging
import os
from typing import Iterator, List

from .command import CommandRunner
from .shell import PathLike

logger = logging.getLogger(__name__)

BIND_SOURCES = ("/dev", "/proc", "/sys")


def mount_chroot_binds(runner: CommandRunner, target_root: PathLike) -> List[str]:
    """Bind /dev, /proc and /sys into the rootfs; returns what got mounted."""

    mounted: List[str] = []
    root = os.fspath(target_root)
    for src in BIND_SOURCES:
        dst = f"{root}{src}"
        os.makedirs(dst, exist_ok=True)
        r = runner.run(["mount", "--bind", src, dst])
        if r.returncode != 0:
            umount_chroot_binds(runner, mounted)
            raise RuntimeError(f"failed to bind {src} into {root}")
        mounted.append(dst)
    return mounted


def umount_chroot_binds(runner: CommandRunner, mounted: List[str]) -> None:
    for p in reversed(mounted):
        r = runner.run(["umount", "-lf", p])
        if r.returncode != 0:
            logger.warning("Failed to unmount %s", p)


@contextlib.contextmanager
def chroot_binds(runner: CommandRunner, target_root: PathLike) -> Iterator[None]:
    # Minimal bind mounts for apt, initramfs tooling
    mounted = mount_chroot_binds(runner, target_root)
    try:
        yield
    finally:
        umount_chroot_binds(runner, mounted)
