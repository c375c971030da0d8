from __future__ import annotations

import logging
from pathlib import Path

from .fs import FilesystemOps
from .shell import PathLike

logger = logging.getLogger(__name__)

BOOT_KERNEL_PATH = "/boot/vmlinuz"
BOOT_INITRD_PATH = "/boot/initrd.img"


def write_grub_config(
    fs: FilesystemOps,
    *,
    root: PathLike,
    menu_title: str,
    kernel_params: str,
) -> Path:
    """Write boot/grub/grub.cfg for UEFI boot of the live medium."""

    cfg = Path(root) / "boot/grub/grub.cfg"
    contents = (
        "set timeout=0\n"
        "set default=0\n"
        "\n"
        f'menuentry "{menu_title}" {{\n'
        f"    linux {BOOT_KERNEL_PATH} {kernel_params}\n"
        f"    initrd {BOOT_INITRD_PATH}\n"
        "}\n"
    )
    fs.write_file(cfg, contents)
    logger.info("Wrote GRUB config: %s", str(cfg))
    return cfg


def setup_isolinux(
    fs: FilesystemOps,
    *,
    root: PathLike,
    label: str,
    menu_title: str,
    kernel_params: str,
    isolinux_bin: PathLike,
    ldlinux: PathLike,
) -> Path:
    """Copy the host's isolinux loader files and write isolinux.cfg (legacy BIOS)."""

    isolinux_dir = Path(root) / "isolinux"
    fs.mkdir_all(isolinux_dir)
    fs.copy_file(isolinux_bin, isolinux_dir / "isolinux.bin")
    fs.copy_file(ldlinux, isolinux_dir / "ldlinux.c32")

    cfg = isolinux_dir / "isolinux.cfg"
    contents = (
        f"DEFAULT {label}\n"
        "TIMEOUT 0\n"
        "PROMPT 0\n"
        "\n"
        f"LABEL {label}\n"
        f"    MENU LABEL {menu_title}\n"
        f"    KERNEL {BOOT_KERNEL_PATH}\n"
        f"    APPEND initrd={BOOT_INITRD_PATH} {kernel_params}\n"
    )
    fs.write_file(cfg, contents)
    logger.info("Wrote isolinux config: %s", str(cfg))
    return isolinux_dir
