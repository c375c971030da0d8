from __future__ import annotations

import logging

from ..context import BuildCtx
from ..lib.bootloader import setup_isolinux, write_grub_config
from ..lib.rootfs import cleanup_versioned_boot_files
from . import ensure_ok, step

logger = logging.getLogger(__name__)

SQUASHFS_NAME = "filesystem.squashfs"

CLEANUP_ATTEMPTS = 3
CLEANUP_DELAY = 1.0


class AssemblyPhase:
    """Squash the carrier and wrap it with boot loaders into a hybrid ISO."""

    phase_id = "assembly"

    def run(self, ctx: BuildCtx) -> None:
        cfg = ctx.cfg
        rootfs = ctx.carrier_rootfs
        staging = ctx.staging_dir

        with step(self.phase_id, "configure bootloaders", -1):
            write_grub_config(
                ctx.fs,
                root=rootfs,
                menu_title=cfg.boot_menu_title,
                kernel_params=cfg.live_kernel_params,
            )
            setup_isolinux(
                ctx.fs,
                root=rootfs,
                label=cfg.identity.id,
                menu_title=cfg.boot_menu_title,
                kernel_params=cfg.live_kernel_params,
                isolinux_bin=cfg.isolinux_bin,
                ldlinux=cfg.ldlinux,
            )

        try:
            with step(self.phase_id, "stage boot files", -2):
                ctx.fs.remove_all(staging)
                ctx.fs.mkdir_all(staging / "live")
                ctx.fs.mkdir_all(staging / "boot")
                ctx.fs.copy_file(rootfs / "boot/vmlinuz", staging / "boot/vmlinuz")
                ctx.fs.copy_file(rootfs / "boot/initrd.img", staging / "boot/initrd.img")
                ctx.fs.copy_tree(rootfs / "boot/grub", staging / "boot/grub")
                ctx.fs.copy_tree(rootfs / "isolinux", staging / "isolinux")

                # Boot files live on the ISO, not inside the squashfs.
                cleanup_versioned_boot_files(ctx.fs, rootfs)
                ctx.fs.remove_file(rootfs / "boot/vmlinuz")
                ctx.fs.remove_file(rootfs / "boot/initrd.img")
                ctx.fs.remove_file(rootfs / "boot/grub/grub.cfg")
                ctx.fs.remove_all(rootfs / "isolinux")

            with step(self.phase_id, "squashfs", -3):
                ensure_ok(
                    ctx.runner.run(
                        [
                            "mksquashfs",
                            str(rootfs),
                            str(staging / "live" / SQUASHFS_NAME),
                            "-comp",
                            "xz",
                            "-noappend",
                        ],
                        stream=True,
                    )
                )

            with step(self.phase_id, "iso", -4):
                ctx.fs.mkdir_all(ctx.output_dir)
                ctx.fs.remove_file(ctx.iso_path)
                ensure_ok(
                    ctx.runner.run(
                        [
                            "grub-mkrescue",
                            "-o",
                            str(ctx.iso_path),
                            "--locales=",
                            "--fonts=",
                            "--themes=",
                            str(staging),
                        ],
                        stream=True,
                    )
                )
                if not ctx.fs.exists(ctx.iso_path):
                    raise FileNotFoundError(f"grub-mkrescue did not produce {ctx.iso_path}")
        finally:
            if not ctx.fs.remove_all_with_retries(staging, attempts=CLEANUP_ATTEMPTS, delay=CLEANUP_DELAY):
                logger.warning("Staging directory left behind: %s", staging)

        for leftover in (rootfs, ctx.payload_tarball):
            try:
                ctx.fs.remove_all(leftover)
            except OSError as e:
                logger.warning("Failed to remove %s: %s", leftover, e)

        logger.info("ISO written: %s", ctx.iso_path)
