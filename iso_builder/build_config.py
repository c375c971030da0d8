from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .lib.branding import OsIdentity
from .lib.components import ComponentSpec

DEFAULT_TARGET_PACKAGES = [
    "linux-image-amd64",
    "systemd-sysv",
    "grub-pc",
    "plymouth",
    "plymouth-themes",
    "network-manager",
    "sudo",
    "xserver-xorg",
    "xdm",
    "firmware-linux-free",
]

DEFAULT_LIVE_PACKAGES = [
    "linux-image-amd64",
    "systemd-sysv",
    "live-boot",
    "plymouth",
    "plymouth-themes",
    "libncurses6",
    "parted",
    "dosfstools",
    "e2fsprogs",
]

DEFAULT_BIOS_PACKAGES = ["grub-pc", "grub-pc-bin", "grub2-common", "grub-common"]
DEFAULT_EFI_PACKAGES = ["grub-efi-amd64", "grub-efi-amd64-bin", "grub2-common", "grub-common", "efibootmgr"]

DEFAULT_COMPONENTS: List[Dict[str, Any]] = [
    {"source": "installation-wizard", "installed": "limeos-installer", "repository": "installation-wizard", "required": True},
    {"source": "window-manager", "installed": "limeos-window-manager", "repository": "window-manager", "required": False},
    {"source": "display-manager", "installed": "limeos-display-manager", "repository": "display-manager", "required": False},
]


SECTIONS = ("paths", "cache", "debian", "packages", "os", "boot", "installer", "github")


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"build config section '{name}' must be a mapping")
    return value


@dataclass(frozen=True)
class BuildConfig:
    raw: Dict[str, Any]

    def validate(self) -> None:
        """Raise ValueError for malformed sections now rather than mid-build."""

        for name in SECTIONS:
            _section(self.raw, name)
        self.components

    # paths

    @property
    def build_dir(self) -> Optional[str]:
        value = _section(self.raw, "paths").get("build_dir")
        return str(value) if value else None

    @property
    def output_dir(self) -> str:
        return str(_section(self.raw, "paths").get("output_dir") or ".")

    @property
    def cache_dir(self) -> str:
        return str(_section(self.raw, "cache").get("dir") or ".cache")

    @property
    def cache_enabled(self) -> bool:
        return bool(_section(self.raw, "cache").get("enabled", True))

    @property
    def cache_verify(self) -> bool:
        return bool(_section(self.raw, "cache").get("verify", True))

    @property
    def iso_prefix(self) -> str:
        return str(_section(self.raw, "paths").get("iso_prefix") or "limeos")

    # debian

    @property
    def debian_release(self) -> str:
        return str(_section(self.raw, "debian").get("release") or "bookworm")

    @property
    def debian_mirror(self) -> str:
        return str(_section(self.raw, "debian").get("mirror") or "http://deb.debian.org/debian")

    @property
    def security_mirror(self) -> str:
        return str(
            _section(self.raw, "debian").get("security_mirror") or "http://security.debian.org/debian-security"
        )

    @property
    def target_packages(self) -> List[str]:
        return list(_section(self.raw, "packages").get("target") or DEFAULT_TARGET_PACKAGES)

    @property
    def live_packages(self) -> List[str]:
        return list(_section(self.raw, "packages").get("live") or DEFAULT_LIVE_PACKAGES)

    @property
    def bios_packages(self) -> List[str]:
        return list(_section(self.raw, "packages").get("bios") or DEFAULT_BIOS_PACKAGES)

    @property
    def efi_packages(self) -> List[str]:
        return list(_section(self.raw, "packages").get("efi") or DEFAULT_EFI_PACKAGES)

    @property
    def bios_packages_dir(self) -> str:
        return str(_section(self.raw, "packages").get("bios_dir") or "/usr/share/limeos/packages/bios")

    @property
    def efi_packages_dir(self) -> str:
        return str(_section(self.raw, "packages").get("efi_dir") or "/usr/share/limeos/packages/efi")

    @property
    def target_services(self) -> List[str]:
        return list(_section(self.raw, "packages").get("services") or ["NetworkManager"])

    # identity

    @property
    def identity(self) -> OsIdentity:
        s = _section(self.raw, "os")
        d = OsIdentity()
        return OsIdentity(
            name=str(s.get("name") or d.name),
            id=str(s.get("id") or d.id),
            base_id=str(s.get("base_id") or d.base_id),
            home_url=str(s.get("home_url") or d.home_url),
        )

    @property
    def payload_embed_path(self) -> str:
        return str(_section(self.raw, "os").get("payload_path") or f"/usr/share/{self.identity.id}/rootfs.tar.gz")

    @property
    def default_user(self) -> str:
        return str(_section(self.raw, "os").get("default_user") or "user")

    @property
    def default_password(self) -> str:
        return str(_section(self.raw, "os").get("default_password") or "user")

    # boot

    @property
    def splash_logo(self) -> str:
        return str(_section(self.raw, "boot").get("splash_logo") or "assets/splash.png")

    @property
    def plymouth_theme(self) -> str:
        return str(_section(self.raw, "boot").get("plymouth_theme") or self.identity.id)

    @property
    def live_kernel_params(self) -> str:
        return str(_section(self.raw, "boot").get("live_kernel_params") or "boot=live quiet splash loglevel=0")

    @property
    def target_kernel_params(self) -> str:
        return str(_section(self.raw, "boot").get("target_kernel_params") or "quiet splash loglevel=0")

    @property
    def isolinux_bin(self) -> str:
        return str(_section(self.raw, "boot").get("isolinux_bin") or "/usr/lib/ISOLINUX/isolinux.bin")

    @property
    def ldlinux(self) -> str:
        return str(_section(self.raw, "boot").get("ldlinux") or "/usr/lib/syslinux/modules/bios/ldlinux.c32")

    @property
    def boot_menu_title(self) -> str:
        return f"{self.identity.name} Installer"

    # components

    @property
    def components(self) -> List[ComponentSpec]:
        raw = self.raw.get("components")
        entries = raw if raw else DEFAULT_COMPONENTS
        if not isinstance(entries, list):
            raise ValueError("build config 'components' must be a list")
        return [ComponentSpec.from_raw(e) for e in entries]

    @property
    def install_bin_path(self) -> str:
        return str(_section(self.raw, "installer").get("bin_path") or "/usr/local/bin")

    @property
    def installer_service(self) -> str:
        return str(_section(self.raw, "installer").get("service") or "limeos-installer")

    @property
    def installer_binary(self) -> str:
        value = _section(self.raw, "installer").get("binary")
        if value:
            return str(value)
        required = [c for c in self.components if c.required]
        return required[0].installed if required else self.installer_service

    # github

    @property
    def github_api_base(self) -> str:
        return str(_section(self.raw, "github").get("api_base") or "https://api.github.com/repos")

    @property
    def github_org(self) -> str:
        return str(_section(self.raw, "github").get("org") or "limeos-org")

    @property
    def user_agent(self) -> str:
        return str(_section(self.raw, "github").get("user_agent") or "limeos-iso-builder/1.0")


def load_build_config(path: str | None) -> BuildConfig:
    """Load a YAML build config; ``None`` means built-in defaults."""

    if path is None:
        return BuildConfig(raw={})

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("build config must be YAML")

    try:
        import yaml  # type: ignore
    except ImportError as e:
        raise RuntimeError("PyYAML is required to read the build config") from e

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"invalid YAML in {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ValueError("build config must contain a mapping/object")

    return BuildConfig(raw=raw)
