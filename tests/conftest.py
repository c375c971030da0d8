"""Shared fixtures.

FakeRunner stands in for the host tooling: ``cp`` and ``tar`` really run
(they are the point of most assertions), debootstrap / mksquashfs /
grub-mkrescue produce placeholder output, everything else succeeds without
doing anything. Every argv is recorded.
"""

from __future__ import annotations

import tarfile
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from iso_builder.build_config import BuildConfig
from iso_builder.lib.command import CmdResult, CommandRunner
from iso_builder.lib.resolve import ResolveError

KERNEL_VERSION = "6.1.0-18-amd64"

REAL_PROGRAMS = {"cp", "tar"}


class FakeRunner(CommandRunner):
    def __init__(self, fail: Optional[Callable[[List[str]], bool]] = None) -> None:
        self.calls: List[List[str]] = []
        self.fail = fail
        self.squashed: Dict[str, str] = {}

    def programs(self) -> List[str]:
        return [c[0] for c in self.calls]

    def count(self, program: str) -> int:
        return sum(1 for c in self.calls if c[0] == program)

    def chroot_calls(self) -> List[List[str]]:
        return [c[2:] for c in self.calls if c[0] == "chroot"]

    def _execute(self, argv, *, env, cwd, input_text, stream) -> CmdResult:
        self.calls.append(list(argv))
        if self.fail is not None and self.fail(list(argv)):
            return CmdResult(argv=list(argv), returncode=1, stdout="", stderr="simulated failure")

        program = argv[0]
        if program in REAL_PROGRAMS:
            return super()._execute(argv, env=env, cwd=cwd, input_text=input_text, stream=False)

        handler = getattr(self, "_fake_" + program.replace("-", "_"), None)
        if handler is not None:
            handler(argv)
        return CmdResult(argv=list(argv), returncode=0, stdout="", stderr="")

    def _fake_debootstrap(self, argv) -> None:
        root = Path(argv[3])
        boot = root / "boot"
        boot.mkdir(parents=True, exist_ok=True)
        (boot / f"vmlinuz-{KERNEL_VERSION}").write_bytes(b"kernel")
        (boot / f"initrd.img-{KERNEL_VERSION}").write_bytes(b"initrd")
        for rel in ("usr/share/doc/bash", "usr/share/man/man1", "usr/share/locale/en_US", "etc/update-motd.d"):
            (root / rel).mkdir(parents=True, exist_ok=True)
        (root / "usr/share/doc/bash/README").write_text("docs\n")
        (root / "etc/motd").write_text("Debian GNU/Linux\n")
        (root / "var/cache/apt/archives").mkdir(parents=True, exist_ok=True)
        (root / "var/lib/apt/lists").mkdir(parents=True, exist_ok=True)

    def _fake_mksquashfs(self, argv) -> None:
        source, dest = Path(argv[1]), Path(argv[2])
        os_release = source / "etc/os-release"
        if os_release.is_file():
            self.squashed["os-release"] = os_release.read_text()
        for tarball in source.glob("usr/share/*/rootfs.tar.gz"):
            with tarfile.open(tarball) as tf:
                member = tf.extractfile("./etc/os-release")
                if member is not None:
                    self.squashed["payload-os-release"] = member.read().decode()
        self.squashed["boot"] = " ".join(sorted(p.name for p in (source / "boot").iterdir()))
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(b"hsqs")

    def _fake_grub_mkrescue(self, argv) -> None:
        out = Path(argv[argv.index("-o") + 1])
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(b"CD001")


class StubResolver:
    """Writes a placeholder binary for every fetched component."""

    def __init__(self, missing=()) -> None:
        self.missing = set(missing)
        self.fetched: List[tuple] = []

    def fetch_component(self, repository, asset_name, version, dest_dir):
        if asset_name in self.missing:
            raise ResolveError(f"no release for {asset_name}", code="no_match")
        self.fetched.append((repository, asset_name, version))
        dest = Path(dest_dir) / asset_name
        dest.write_text("#!/bin/sh\nexit 0\n")
        return dest


@pytest.fixture
def host_files(tmp_path):
    assets = tmp_path / "assets"
    assets.mkdir()
    files = {
        "splash_logo": assets / "splash.png",
        "isolinux_bin": assets / "isolinux.bin",
        "ldlinux": assets / "ldlinux.c32",
    }
    for p in files.values():
        p.write_bytes(b"\x89PNG" if p.suffix == ".png" else b"loader")
    return files


@pytest.fixture
def make_config(tmp_path, host_files):
    def _make(*, cache: bool = True, **sections) -> BuildConfig:
        raw = {
            "paths": {"output_dir": str(tmp_path / "out")},
            "cache": {"enabled": cache, "dir": str(tmp_path / "cache")},
            "boot": {k: str(v) for k, v in host_files.items()},
        }
        raw.update(sections)
        return BuildConfig(raw=raw)

    return _make


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def stub_resolver():
    return StubResolver(missing={"window-manager", "display-manager"})
