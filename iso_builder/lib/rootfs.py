from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from .command import CommandRunner
from .fs import FilesystemOps
from .shell import PathLike, quote_path

logger = logging.getLogger(__name__)

GPU_MODULES = ("amdgpu", "i915", "nouveau", "radeon")

MASKED_UNITS = ("systemd-rfkill.service", "systemd-rfkill.socket")


def preseed_initramfs_modules(fs: FilesystemOps, rootfs: PathLike) -> None:
    # Drop-in must exist before any kernel package is installed.
    fs.write_file(
        Path(rootfs) / "etc/initramfs-tools/conf.d/driver-policy.conf",
        "MODULES=most\n",
    )


def add_gpu_modules(fs: FilesystemOps, rootfs: PathLike, modules: Sequence[str] = GPU_MODULES) -> None:
    """Early KMS so the splash comes up at native resolution."""

    fs.append_file(
        Path(rootfs) / "etc/initramfs-tools/modules",
        "".join(f"{m}\n" for m in modules),
    )


def strip_rootfs(fs: FilesystemOps, runner: CommandRunner, rootfs: PathLike) -> None:
    """Drop docs, non-English locales, rfkill units and the motd."""

    root = Path(rootfs)
    logger.info("Stripping rootfs %s", root)

    for rel in ("usr/share/doc", "usr/share/man", "usr/share/info"):
        fs.remove_all(root / rel)

    locale_dir = root / "usr/share/locale"
    if locale_dir.is_dir():
        r = runner.run_shell(
            f"find {quote_path(locale_dir)} -mindepth 1 -maxdepth 1 ! -name 'en*' -exec rm -rf {{}} +"
        )
        if r.returncode != 0:
            raise RuntimeError("failed to remove non-English locales")

    for unit in MASKED_UNITS:
        fs.symlink("/dev/null", root / "etc/systemd/system" / unit)

    fs.write_file(root / "etc/motd", "")
    fs.remove_all(root / "etc/update-motd.d")


def cleanup_apt_directories(fs: FilesystemOps, rootfs: PathLike) -> None:
    """Empty APT caches and lists, keeping the directories apt expects."""

    root = Path(rootfs)
    for rel in ("var/cache/apt", "var/lib/apt/lists"):
        fs.remove_all(root / rel)
        fs.mkdir_all(root / rel)
    fs.mkdir_all(root / "var/cache/apt/archives/partial")
    fs.mkdir_all(root / "var/lib/apt/lists/partial")


def copy_kernel_and_initrd(fs: FilesystemOps, rootfs: PathLike) -> None:
    """Copy the versioned kernel and initrd to /boot/vmlinuz and /boot/initrd.img."""

    boot = Path(rootfs) / "boot"
    kernel = fs.find_first_match(boot / "vmlinuz-*")
    if kernel is None:
        raise FileNotFoundError(f"no kernel found in {boot}")
    initrd = fs.find_first_match(boot / "initrd.img-*")
    if initrd is None:
        raise FileNotFoundError(f"no initrd found in {boot}")

    fs.copy_file(kernel, boot / "vmlinuz")
    fs.copy_file(initrd, boot / "initrd.img")
    logger.info("Using kernel %s, initrd %s", kernel.name, initrd.name)


def cleanup_versioned_boot_files(fs: FilesystemOps, rootfs: PathLike) -> None:
    boot = Path(rootfs) / "boot"
    for pattern in ("vmlinuz-*", "initrd.img-*", "System.map-*", "config-*"):
        for p in sorted(boot.glob(pattern)):
            fs.remove_all(p)
