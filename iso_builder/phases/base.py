from __future__ import annotations

import logging

from ..context import BuildCtx
from ..lib.chroot import chroot_binds
from ..lib.pkg import apt_update, debootstrap_rootfs
from ..lib.rootfs import preseed_initramfs_modules, strip_rootfs
from . import ensure_ok, restore_from_cache, save_to_cache, step

logger = logging.getLogger(__name__)

CACHE_ENTRY = "base"


class BasePhase:
    """Minimal Debian rootfs shared by the payload and the carrier."""

    phase_id = "base"

    def run(self, ctx: BuildCtx) -> None:
        rootfs = ctx.base_rootfs

        if restore_from_cache(ctx, CACHE_ENTRY, rootfs):
            logger.info("Base rootfs restored from cache")
            return

        with step(self.phase_id, "create", -1):
            ctx.fs.remove_all(rootfs)
            ctx.fs.mkdir_all(rootfs)
            ensure_ok(
                debootstrap_rootfs(
                    ctx.runner,
                    target_root=rootfs,
                    suite=ctx.cfg.debian_release,
                    mirror=ctx.cfg.debian_mirror,
                )
            )

        with step(self.phase_id, "configure apt", -2):
            ctx.fs.write_file(
                rootfs / "etc/apt/sources.list",
                f"deb {ctx.cfg.debian_mirror} {ctx.cfg.debian_release} main non-free-firmware\n",
            )
            with chroot_binds(ctx.runner, rootfs):
                ensure_ok(apt_update(ctx.runner, rootfs))

        with step(self.phase_id, "preseed initramfs", -3):
            preseed_initramfs_modules(ctx.fs, rootfs)

        with step(self.phase_id, "strip", -4):
            strip_rootfs(ctx.fs, ctx.runner, rootfs)

        save_to_cache(ctx, CACHE_ENTRY, rootfs)
