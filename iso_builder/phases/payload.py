from __future__ import annotations

import logging

from ..context import BuildCtx
from ..lib import branding
from ..lib.chroot import chroot_binds
from ..lib.pkg import apt_clean, apt_install, create_user, systemctl_enable
from ..lib.rootfs import add_gpu_modules, cleanup_apt_directories
from . import ensure_ok, package_cache, restore_from_cache, save_to_cache, step

logger = logging.getLogger(__name__)

CACHE_ENTRY = "payload"


def brand_payload(ctx: BuildCtx) -> None:
    """Version-specific branding of the installed system."""

    cfg = ctx.cfg
    rootfs = ctx.payload_rootfs
    identity = cfg.identity

    branding.write_os_identity(ctx.fs, rootfs, version=ctx.version, identity=identity)
    with chroot_binds(ctx.runner, rootfs):
        branding.configure_splash(
            ctx.fs,
            ctx.runner,
            rootfs,
            logo_path=cfg.splash_logo,
            theme=cfg.plymouth_theme,
            display_name=identity.name,
        )
    branding.configure_target_grub(ctx.fs, rootfs, os_name=identity.name, kernel_params=cfg.target_kernel_params)
    branding.configure_apt_sources(
        ctx.fs,
        rootfs,
        mirror=cfg.debian_mirror,
        release=cfg.debian_release,
        security_mirror=cfg.security_mirror,
    )
    branding.configure_tty_policy(ctx.fs, rootfs)
    branding.configure_xdm(ctx.fs, rootfs, os_name=identity.name)


class PayloadPhase:
    """The rootfs the installer copies onto the target disk, as a tarball."""

    phase_id = "payload"

    def run(self, ctx: BuildCtx) -> None:
        rootfs = ctx.payload_rootfs

        if restore_from_cache(ctx, CACHE_ENTRY, rootfs):
            logger.info("Payload rootfs restored from cache")
        else:
            self._build(ctx)
            save_to_cache(ctx, CACHE_ENTRY, rootfs)

        with step(self.phase_id, "brand", -5):
            brand_payload(ctx)

        with step(self.phase_id, "package", -6):
            ctx.fs.remove_file(ctx.payload_tarball)
            ensure_ok(
                ctx.runner.run(
                    ["tar", "--numeric-owner", "-czf", str(ctx.payload_tarball), "-C", str(rootfs), "."],
                )
            )
            ctx.fs.remove_all(rootfs)

    def _build(self, ctx: BuildCtx) -> None:
        cfg = ctx.cfg
        rootfs = ctx.payload_rootfs

        with step(self.phase_id, "create", -1):
            ctx.fs.remove_all(rootfs)
            ctx.fs.copy_tree(ctx.base_rootfs, rootfs)

        with step(self.phase_id, "install packages", -2):
            with package_cache(ctx, rootfs), chroot_binds(ctx.runner, rootfs):
                ensure_ok(apt_install(ctx.runner, rootfs, cfg.target_packages))

                with step(self.phase_id, "configure", -3):
                    add_gpu_modules(ctx.fs, rootfs)
                    ensure_ok(apt_clean(ctx.runner, rootfs))
                    if not create_user(
                        ctx.runner,
                        rootfs,
                        name=cfg.default_user,
                        password=cfg.default_password,
                        groups=["sudo"],
                    ):
                        raise RuntimeError(f"failed to create user {cfg.default_user}")
                    for unit in cfg.target_services:
                        ensure_ok(systemctl_enable(ctx.runner, rootfs, unit))

        with step(self.phase_id, "cleanup", -4):
            cleanup_apt_directories(ctx.fs, rootfs)
