from __future__ import annotations

import contextlib
import logging
from pathlib import Path

from ..context import BuildCtx
from ..lib import branding
from ..lib.autostart import configure_installer_autostart
from ..lib.chroot import chroot_binds
from ..lib.components import install_components
from ..lib.pkg import apt_clean, apt_download, apt_install
from ..lib.rootfs import add_gpu_modules, cleanup_apt_directories, copy_kernel_and_initrd
from . import ensure_ok, package_cache, restore_from_cache, save_to_cache, step

logger = logging.getLogger(__name__)

CACHE_ENTRY = "carrier"

BIOS_CACHE_SUBDIR = "bios-packages"
EFI_CACHE_SUBDIR = "efi-packages"


def bundle_packages(ctx: BuildCtx, *, packages, chroot_dir: str, cache_subdir: str) -> None:
    """Put bootloader .debs at ``chroot_dir`` for the installer to use offline."""

    rootfs = ctx.carrier_rootfs
    host_dir = Path(rootfs) / chroot_dir.lstrip("/")
    ctx.fs.mkdir_all(host_dir)

    if ctx.cache is not None and ctx.cache.has_packages(cache_subdir):
        logger.info("Using cached %s...", cache_subdir)
        try:
            ctx.cache.load_packages(cache_subdir, host_dir)
            return
        except OSError as e:
            logger.warning("Failed to copy cached %s, downloading: %s", cache_subdir, e)

    ensure_ok(apt_download(ctx.runner, rootfs, packages, dest_dir=chroot_dir))

    if ctx.cache is not None:
        try:
            ctx.cache.store_packages(host_dir, cache_subdir)
        except OSError as e:
            logger.warning("Failed to cache %s: %s", cache_subdir, e)


class CarrierPhase:
    """The live system that boots from the ISO and runs the installer."""

    phase_id = "carrier"

    def run(self, ctx: BuildCtx) -> None:
        rootfs = ctx.carrier_rootfs

        if restore_from_cache(ctx, CACHE_ENTRY, rootfs):
            logger.info("Carrier rootfs restored from cache")
        else:
            self._build(ctx)
            save_to_cache(ctx, CACHE_ENTRY, rootfs)

        with contextlib.ExitStack() as mounts:
            with step(self.phase_id, "prepare chroot", -4):
                mounts.enter_context(package_cache(ctx, rootfs))
                mounts.enter_context(chroot_binds(ctx.runner, rootfs))
            self._configure(ctx)

        with step(self.phase_id, "cleanup", -10):
            cleanup_apt_directories(ctx.fs, rootfs)
            # Nothing reads the base tree after this point.
            ctx.fs.remove_all(ctx.base_rootfs)

    def _build(self, ctx: BuildCtx) -> None:
        cfg = ctx.cfg
        rootfs = ctx.carrier_rootfs

        with step(self.phase_id, "create", -1):
            ctx.fs.remove_all(rootfs)
            ctx.fs.copy_tree(ctx.base_rootfs, rootfs)

        with step(self.phase_id, "install packages", -2):
            with package_cache(ctx, rootfs), chroot_binds(ctx.runner, rootfs):
                ensure_ok(apt_install(ctx.runner, rootfs, cfg.live_packages))
                add_gpu_modules(ctx.fs, rootfs)
                ensure_ok(apt_clean(ctx.runner, rootfs))

        with step(self.phase_id, "boot files", -3):
            copy_kernel_and_initrd(ctx.fs, rootfs)

    def _configure(self, ctx: BuildCtx) -> None:
        cfg = ctx.cfg
        rootfs = ctx.carrier_rootfs
        identity = cfg.identity

        with step(self.phase_id, "brand", -5):
            branding.write_os_identity(ctx.fs, rootfs, version=ctx.version, identity=identity)
            branding.configure_splash(
                ctx.fs,
                ctx.runner,
                rootfs,
                logo_path=cfg.splash_logo,
                theme=cfg.plymouth_theme,
                display_name=identity.name,
                refresh_boot_initrd=True,
            )

        with step(self.phase_id, "embed payload", -6):
            ctx.fs.copy_file(ctx.payload_tarball, rootfs / cfg.payload_embed_path.lstrip("/"))

        with step(self.phase_id, "install components", -7):
            install_components(
                ctx.fs,
                rootfs=rootfs,
                components_dir=ctx.components_dir,
                components=cfg.components,
                bin_path=cfg.install_bin_path,
            )

        with step(self.phase_id, "autostart", -8):
            configure_installer_autostart(
                ctx.fs,
                rootfs,
                service_name=cfg.installer_service,
                exec_start=f"{cfg.install_bin_path.rstrip('/')}/{cfg.installer_binary}",
                description=f"{identity.name} Installation Wizard",
            )

        with step(self.phase_id, "bundle packages", -9):
            bundle_packages(
                ctx, packages=cfg.bios_packages, chroot_dir=cfg.bios_packages_dir, cache_subdir=BIOS_CACHE_SUBDIR
            )
            bundle_packages(
                ctx, packages=cfg.efi_packages, chroot_dir=cfg.efi_packages_dir, cache_subdir=EFI_CACHE_SUBDIR
            )
