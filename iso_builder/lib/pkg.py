from __future__ import annotations

import logging
import os
from typing import Sequence

from .command import CmdResult, CommandRunner
from .shell import PathLike, join, quote_path

logger = logging.getLogger(__name__)

NONINTERACTIVE_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def debootstrap_rootfs(
    runner: CommandRunner,
    *,
    target_root: PathLike,
    suite: str = "bookworm",
    mirror: str | None = None,
    variant: str = "minbase",
) -> CmdResult:
    argv = ["debootstrap", f"--variant={variant}", suite, os.fspath(target_root)]
    if mirror:
        argv.append(mirror)
    return runner.run(argv, stream=True)


def apt_update(runner: CommandRunner, target_root: PathLike) -> CmdResult:
    return runner.run_chroot(target_root, ["apt-get", "update"], stream=True)


def apt_install(
    runner: CommandRunner,
    target_root: PathLike,
    packages: Sequence[str],
    *,
    with_recommends: bool = False,
) -> CmdResult | None:
    if not packages:
        return None
    argv = [
        "apt-get",
        "install",
        "-y",
    ]
    if not with_recommends:
        argv.append("--no-install-recommends")
    return runner.run_chroot(
        target_root,
        [*argv, *packages],
        env=NONINTERACTIVE_ENV,
        stream=True,
    )


def apt_clean(runner: CommandRunner, target_root: PathLike) -> CmdResult:
    return runner.run_chroot(target_root, ["apt-get", "clean"])


def apt_download(
    runner: CommandRunner,
    target_root: PathLike,
    packages: Sequence[str],
    *,
    dest_dir: str,
) -> CmdResult | None:
    """Download .debs into ``dest_dir`` (a path inside the chroot).

    ``apt-get download`` writes to the working directory, hence the shell.
    """

    if not packages:
        return None
    cmdline = f"cd {quote_path(dest_dir)} && apt-get download {join(packages)}"
    return runner.run_chroot_shell(target_root, cmdline, stream=True)


def systemctl_enable(runner: CommandRunner, target_root: PathLike, unit: str) -> CmdResult:
    return runner.run_chroot(target_root, ["systemctl", "enable", unit])


def create_user(
    runner: CommandRunner,
    target_root: PathLike,
    *,
    name: str,
    password: str,
    groups: Sequence[str] = (),
    shell: str = "/bin/bash",
) -> bool:
    argv = ["useradd", "-m", "-s", shell]
    if groups:
        argv += ["-G", ",".join(groups)]
    argv.append(name)
    r = runner.run_chroot(target_root, argv)
    if r.returncode != 0:
        return False
    r = runner.run_chroot(target_root, ["chpasswd"], input_text=f"{name}:{password}\n")
    return r.returncode == 0
