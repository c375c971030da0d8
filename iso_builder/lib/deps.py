from __future__ import annotations

import logging
import os
import shutil
from typing import Sequence

from ..errors import DependencyError

logger = logging.getLogger(__name__)

REQUIRED_COMMANDS = (
    "debootstrap",
    "mksquashfs",
    "grub-mkrescue",
    "xorriso",
    "tar",
    "chroot",
    "mount",
    "umount",
    "cp",
)


def validate_dependencies(
    *,
    files: Sequence[str],
    commands: Sequence[str] = REQUIRED_COMMANDS,
) -> None:
    """Check that the host has everything a build touches.

    Raises DependencyError listing all missing files and commands at once.
    """

    missing_files = [f for f in files if not os.path.isfile(f)]
    missing_commands = [c for c in commands if shutil.which(c) is None]

    for f in missing_files:
        logger.error("Missing required file: %s", f)
    for c in missing_commands:
        logger.error("Missing required command: %s", c)

    if missing_files or missing_commands:
        raise DependencyError(missing_files, missing_commands)

    logger.info("All build dependencies present")
