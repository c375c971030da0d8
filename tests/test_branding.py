"""Tests for rootfs branding and generated config files."""

import os

import pytest

from conftest import FakeRunner
from iso_builder.lib import branding
from iso_builder.lib.autostart import configure_installer_autostart
from iso_builder.lib.bootloader import setup_isolinux, write_grub_config
from iso_builder.lib.fs import FilesystemOps
from iso_builder.lib.rootfs import cleanup_apt_directories, copy_kernel_and_initrd, strip_rootfs


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def fs(runner):
    return FilesystemOps(runner)


class TestIdentity:
    def test_os_release_strips_prefix(self, fs, tmp_path):
        branding.write_os_identity(fs, tmp_path, version="v1.2.3", identity=branding.OsIdentity())
        text = (tmp_path / "etc/os-release").read_text()
        assert 'VERSION_ID="1.2.3"' in text
        assert 'PRETTY_NAME="LimeOS 1.2.3"' in text
        assert "ID=limeos\n" in text
        assert "ID_LIKE=debian\n" in text
        assert (tmp_path / "etc/issue").read_text() == "LimeOS 1.2.3 \\n \\l\n\n"
        assert (tmp_path / "etc/issue.net").read_text() == "LimeOS 1.2.3\n"
        assert (tmp_path / "etc/machine-id").read_text() == ""

    def test_rewrite_is_idempotent(self, fs, tmp_path):
        ident = branding.OsIdentity()
        branding.write_os_identity(fs, tmp_path, version="1.0.0", identity=ident)
        branding.write_os_identity(fs, tmp_path, version="2.0.0", identity=ident)
        assert 'VERSION="2.0.0"' in (tmp_path / "etc/os-release").read_text()
        assert "1.0.0" not in (tmp_path / "etc/os-release").read_text()

    def test_tty_policy_blanks_issue(self, fs, tmp_path):
        branding.write_os_identity(fs, tmp_path, version="1.0.0", identity=branding.OsIdentity())
        branding.configure_tty_policy(fs, tmp_path)
        assert (tmp_path / "etc/issue").read_text() == ""
        assert os.readlink(tmp_path / "etc/systemd/system/getty@tty1.service") == "/dev/null"


class TestSplash:
    def test_theme_written(self, fs, runner, tmp_path):
        logo = tmp_path / "logo.png"
        logo.write_bytes(b"\x89PNG")
        rootfs = tmp_path / "rootfs"
        branding.configure_splash(fs, runner, rootfs, logo_path=logo, theme="limeos", display_name="LimeOS")

        theme = rootfs / "usr/share/plymouth/themes/limeos"
        assert (theme / "splash.png").read_bytes() == b"\x89PNG"
        assert "ModuleName=script" in (theme / "limeos.plymouth").read_text()
        assert ["plymouth-set-default-theme", "limeos"] in runner.chroot_calls()
        assert ["update-initramfs", "-u"] in runner.chroot_calls()

    def test_missing_logo(self, fs, runner, tmp_path):
        with pytest.raises(FileNotFoundError):
            branding.configure_splash(
                fs, runner, tmp_path, logo_path=tmp_path / "nope.png", theme="limeos", display_name="LimeOS"
            )

    def test_plymouth_failure_only_warns(self, fs, tmp_path, caplog):
        runner = FakeRunner(fail=lambda argv: argv[0] == "chroot")
        logo = tmp_path / "logo.png"
        logo.write_bytes(b"png")
        branding.configure_splash(
            FilesystemOps(runner), runner, tmp_path / "r", logo_path=logo, theme="t", display_name="T"
        )
        assert "Failed to set Plymouth theme" in caplog.text


def test_target_grub_dropin(fs, tmp_path):
    branding.configure_target_grub(fs, tmp_path, os_name="LimeOS", kernel_params="quiet splash")
    text = (tmp_path / "etc/default/grub.d/distributor.cfg").read_text()
    assert 'GRUB_DISTRIBUTOR="LimeOS"' in text
    assert "GRUB_TIMEOUT=0" in text
    assert 'GRUB_CMDLINE_LINUX_DEFAULT="quiet splash"' in text


def test_apt_sources(fs, tmp_path):
    branding.configure_apt_sources(fs, tmp_path, mirror="http://deb.debian.org/debian", release="bookworm")
    lines = (tmp_path / "etc/apt/sources.list").read_text().splitlines()
    assert lines[0] == "deb http://deb.debian.org/debian bookworm main contrib non-free non-free-firmware"
    assert lines[2].startswith("deb http://security.debian.org/debian-security bookworm-security ")


def test_autostart(fs, tmp_path):
    configure_installer_autostart(
        fs,
        tmp_path,
        service_name="limeos-installer",
        exec_start="/usr/local/bin/limeos-installer",
        description="LimeOS Installation Wizard",
    )
    system = tmp_path / "etc/systemd/system"
    unit = (system / "limeos-installer.service").read_text()
    assert "ExecStart=/usr/local/bin/limeos-installer\n" in unit
    assert "TTYPath=/dev/tty1" in unit
    assert os.readlink(system / "multi-user.target.wants/limeos-installer.service") == "../limeos-installer.service"
    assert os.readlink(system / "default.target") == "/lib/systemd/system/multi-user.target"


class TestBootloaders:
    def test_grub_cfg(self, fs, tmp_path):
        cfg = write_grub_config(fs, root=tmp_path, menu_title="LimeOS Installer", kernel_params="boot=live quiet")
        text = cfg.read_text()
        assert "set timeout=0" in text
        assert "    linux /boot/vmlinuz boot=live quiet\n" in text
        assert "    initrd /boot/initrd.img\n" in text

    def test_isolinux(self, fs, tmp_path):
        bin_, ld = tmp_path / "isolinux.bin", tmp_path / "ldlinux.c32"
        bin_.write_bytes(b"bin")
        ld.write_bytes(b"ld")
        d = setup_isolinux(
            fs,
            root=tmp_path / "rootfs",
            label="limeos",
            menu_title="LimeOS Installer",
            kernel_params="boot=live",
            isolinux_bin=bin_,
            ldlinux=ld,
        )
        assert (d / "isolinux.bin").read_bytes() == b"bin"
        assert "APPEND initrd=/boot/initrd.img boot=live" in (d / "isolinux.cfg").read_text()

    def test_isolinux_missing_loader(self, fs, tmp_path):
        with pytest.raises(FileNotFoundError):
            setup_isolinux(
                fs,
                root=tmp_path,
                label="x",
                menu_title="x",
                kernel_params="",
                isolinux_bin=tmp_path / "missing.bin",
                ldlinux=tmp_path / "missing.c32",
            )


class TestRootfsHelpers:
    def test_copy_kernel_and_initrd(self, fs, tmp_path):
        boot = tmp_path / "boot"
        boot.mkdir()
        (boot / "vmlinuz-6.1.0-9-amd64").write_text("old")
        (boot / "vmlinuz-6.1.0-18-amd64").write_text("new")
        (boot / "initrd.img-6.1.0-18-amd64").write_text("initrd")
        copy_kernel_and_initrd(fs, tmp_path)
        assert (boot / "vmlinuz").read_text() == "new"
        assert (boot / "initrd.img").read_text() == "initrd"

    def test_copy_kernel_missing(self, fs, tmp_path):
        (tmp_path / "boot").mkdir()
        with pytest.raises(FileNotFoundError):
            copy_kernel_and_initrd(fs, tmp_path)

    def test_strip(self, fs, runner, tmp_path):
        (tmp_path / "usr/share/doc/bash").mkdir(parents=True)
        (tmp_path / "usr/share/locale").mkdir(parents=True)
        (tmp_path / "etc/update-motd.d").mkdir(parents=True)
        (tmp_path / "etc/motd").write_text("hello\n")

        strip_rootfs(fs, runner, tmp_path)

        assert not (tmp_path / "usr/share/doc").exists()
        assert not (tmp_path / "etc/update-motd.d").exists()
        assert (tmp_path / "etc/motd").read_text() == ""
        assert os.readlink(tmp_path / "etc/systemd/system/systemd-rfkill.socket") == "/dev/null"
        find = [c for c in runner.calls if c[0] == "sh"][0]
        assert find[2].startswith(f"find '{tmp_path}/usr/share/locale' ")
        assert "! -name 'en*'" in find[2]

    def test_cleanup_apt_directories(self, fs, tmp_path):
        archives = tmp_path / "var/cache/apt/archives"
        archives.mkdir(parents=True)
        (archives / "x.deb").write_text("deb")
        cleanup_apt_directories(fs, tmp_path)
        assert list(archives.iterdir()) == [archives / "partial"]
        assert (tmp_path / "var/lib/apt/lists").is_dir()
