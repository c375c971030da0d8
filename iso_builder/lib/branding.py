"""Version branding applied to the payload and carrier rootfs.

All writers here are truncate-and-write; running them twice over the same
rootfs gives the same tree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from ..version import strip_version_prefix
from .command import CommandRunner
from .fs import FilesystemOps
from .shell import PathLike

logger = logging.getLogger(__name__)

PLYMOUTH_THEMES_DIR = "/usr/share/plymouth/themes"


@dataclass(frozen=True)
class OsIdentity:
    name: str = "LimeOS"
    id: str = "limeos"
    base_id: str = "debian"
    home_url: str = "https://limeos.org"


def write_os_identity(fs: FilesystemOps, rootfs: PathLike, *, version: str, identity: OsIdentity) -> None:
    """Write os-release, issue, issue.net and an empty machine-id."""

    root = Path(rootfs)
    v = strip_version_prefix(version)
    fs.write_file(
        root / "etc/os-release",
        f'PRETTY_NAME="{identity.name} {v}"\n'
        f'NAME="{identity.name}"\n'
        f'VERSION_ID="{v}"\n'
        f'VERSION="{v}"\n'
        f"ID={identity.id}\n"
        f"ID_LIKE={identity.base_id}\n"
        f'HOME_URL="{identity.home_url}"\n',
    )
    fs.write_file(root / "etc/issue", f"{identity.name} {v} \\n \\l\n\n")
    fs.write_file(root / "etc/issue.net", f"{identity.name} {v}\n")
    # Regenerated on first boot.
    fs.write_file(root / "etc/machine-id", "")
    logger.info("Wrote OS identity for %s %s", identity.name, v)


def configure_splash(
    fs: FilesystemOps,
    runner: CommandRunner,
    rootfs: PathLike,
    *,
    logo_path: PathLike,
    theme: str,
    display_name: str,
    refresh_boot_initrd: bool = False,
) -> None:
    """Install a Plymouth script theme showing ``logo_path`` centered.

    Setting the default theme and rebuilding the initramfs happen inside the
    chroot and only warn on failure (plymouth may not be installed).
    """

    logger.info("Configuring Plymouth splash screen")
    root = Path(rootfs)
    theme_rel = f"{PLYMOUTH_THEMES_DIR}/{theme}"
    theme_dir = root / theme_rel.lstrip("/")

    fs.mkdir_all(theme_dir)
    fs.copy_file(logo_path, theme_dir / "splash.png")
    fs.write_file(
        theme_dir / f"{theme}.plymouth",
        "[Plymouth Theme]\n"
        f"Name={display_name}\n"
        f"Description={display_name} boot splash\n"
        "ModuleName=script\n"
        "\n"
        "[script]\n"
        f"ImageDir={theme_rel}\n"
        f"ScriptFile={theme_rel}/{theme}.script\n",
    )
    fs.write_file(
        theme_dir / f"{theme}.script",
        "Window.SetBackgroundTopColor(0, 0, 0);\n"
        "Window.SetBackgroundBottomColor(0, 0, 0);\n"
        'splash_image = Image("splash.png");\n'
        "sprite = Sprite(splash_image);\n"
        "sprite.SetX(Window.GetWidth() / 2 - splash_image.GetWidth() / 2);\n"
        "sprite.SetY(Window.GetHeight() / 2 - splash_image.GetHeight() / 2);\n",
    )

    if runner.run_chroot(root, ["plymouth-set-default-theme", theme]).returncode != 0:
        logger.warning("Failed to set Plymouth theme (plymouth may not be installed)")

    logger.info("Regenerating initramfs with new theme...")
    if runner.run_chroot(root, ["update-initramfs", "-u"], stream=True).returncode != 0:
        logger.warning("Failed to regenerate initramfs")

    if refresh_boot_initrd:
        src = fs.find_first_match(root / "boot/initrd.img-*")
        if src is not None:
            fs.copy_file(src, root / "boot/initrd.img")


def configure_target_grub(fs: FilesystemOps, rootfs: PathLike, *, os_name: str, kernel_params: str) -> None:
    """Silent-boot drop-in for the installed system's GRUB."""

    path = Path(rootfs) / "etc/default/grub.d/distributor.cfg"
    fs.write_file(
        path,
        f'GRUB_DISTRIBUTOR="{os_name}"\n'
        "GRUB_TIMEOUT=0\n"
        "GRUB_TIMEOUT_STYLE=hidden\n"
        "GRUB_RECORDFAIL_TIMEOUT=0\n"
        "GRUB_GFXMODE=auto\n"
        "GRUB_GFXPAYLOAD_LINUX=keep\n"
        f'GRUB_CMDLINE_LINUX_DEFAULT="{kernel_params}"\n',
    )
    logger.info("Wrote GRUB drop-in %s", path)


def configure_tty_policy(fs: FilesystemOps, rootfs: PathLike) -> None:
    """tty1 is graphical only: mask its getty and blank the issue files.

    Must run after write_os_identity, which fills the issue files.
    """

    root = Path(rootfs)
    fs.symlink("/dev/null", root / "etc/systemd/system/getty@tty1.service")
    fs.write_file(root / "etc/issue", "")
    fs.write_file(root / "etc/issue.net", "")
    logger.info("TTY policy enforced")


def configure_xdm(fs: FilesystemOps, rootfs: PathLike, *, os_name: str) -> None:
    xdm = Path(rootfs) / "etc/X11/xdm"
    fs.write_file(
        xdm / "Xresources",
        f"! XDM configuration for {os_name}\n"
        "\n"
        "! Remove logo, set greeting\n"
        "xlogin*logoFileName:\n"
        f"xlogin*greeting: {os_name}\n",
    )
    # X on vt1 keeps the splash-to-desktop handoff on one terminal.
    fs.write_file(xdm / "Xservers", ":0 local /usr/bin/X :0 vt1\n")


def apt_sources_content(mirror: str, release: str, components: Sequence[str], *, security_mirror: str = "") -> str:
    comps = " ".join(components)
    lines = [
        f"deb {mirror} {release} {comps}",
        f"deb {mirror} {release}-updates {comps}",
    ]
    if security_mirror:
        lines.append(f"deb {security_mirror} {release}-security {comps}")
    return "\n".join(lines) + "\n"


def configure_apt_sources(
    fs: FilesystemOps,
    rootfs: PathLike,
    *,
    mirror: str,
    release: str,
    security_mirror: str = "http://security.debian.org/debian-security",
) -> None:
    fs.write_file(
        Path(rootfs) / "etc/apt/sources.list",
        apt_sources_content(
            mirror,
            release,
            ["main", "contrib", "non-free", "non-free-firmware"],
            security_mirror=security_mirror,
        ),
    )
    logger.info("APT sources configured for %s", release)
