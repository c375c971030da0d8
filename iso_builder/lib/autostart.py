from __future__ import annotations

import logging
from pathlib import Path

from .fs import FilesystemOps
from .shell import PathLike

logger = logging.getLogger(__name__)

SYSTEMD_SYSTEM_DIR = "etc/systemd/system"
MULTI_USER_TARGET = "/lib/systemd/system/multi-user.target"


def installer_unit(*, description: str, exec_start: str) -> str:
    return (
        "[Unit]\n"
        f"Description={description}\n"
        "After=systemd-user-sessions.service\n"
        "After=plymouth-quit-wait.service\n"
        "\n"
        "[Service]\n"
        "Type=simple\n"
        "Environment=PATH=/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin\n"
        f"ExecStart={exec_start}\n"
        "StandardInput=tty\n"
        "StandardOutput=tty\n"
        "TTYPath=/dev/tty1\n"
        "TTYReset=yes\n"
        "TTYVHangup=yes\n"
        "Restart=on-failure\n"
        "RestartSec=1\n"
        "\n"
        "[Install]\n"
        "WantedBy=multi-user.target\n"
    )


def configure_installer_autostart(
    fs: FilesystemOps,
    rootfs: PathLike,
    *,
    service_name: str,
    exec_start: str,
    description: str,
) -> None:
    """Start the installer on tty1 at boot instead of a login prompt."""

    system_dir = Path(rootfs) / SYSTEMD_SYSTEM_DIR
    unit = f"{service_name}.service"

    fs.write_file(system_dir / unit, installer_unit(description=description, exec_start=exec_start))
    fs.symlink(f"../{unit}", system_dir / "multi-user.target.wants" / unit)
    fs.symlink(MULTI_USER_TARGET, system_dir / "default.target")
    fs.remove_file(system_dir / "getty.target.wants/getty@tty1.service")
    logger.info("Installer autostart configured (%s)", unit)
