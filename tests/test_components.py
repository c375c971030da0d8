import logging
import os

import pytest

from iso_builder.lib.command import CommandRunner
from iso_builder.lib.components import ComponentInstallError, ComponentSpec, install_components
from iso_builder.lib.fs import FilesystemOps

COMPONENTS = [
    ComponentSpec(source="installation-wizard", installed="limeos-installer", repository="installation-wizard"),
    ComponentSpec(source="window-manager", installed="limeos-window-manager", repository="window-manager", required=False),
]


@pytest.fixture
def fs():
    return FilesystemOps(CommandRunner())


def test_installs_and_marks_executable(fs, tmp_path):
    comps = tmp_path / "components"
    comps.mkdir()
    for name in ("installation-wizard", "window-manager"):
        (comps / name).write_text("#!/bin/sh\n")

    installed = install_components(fs, rootfs=tmp_path / "rootfs", components_dir=comps, components=COMPONENTS)

    assert installed == ["limeos-installer", "limeos-window-manager"]
    target = tmp_path / "rootfs/usr/local/bin/limeos-installer"
    assert os.access(target, os.X_OK)


def test_optional_component_skipped(fs, tmp_path, caplog):
    comps = tmp_path / "components"
    comps.mkdir()
    (comps / "installation-wizard").write_text("#!/bin/sh\n")

    with caplog.at_level(logging.INFO):
        installed = install_components(fs, rootfs=tmp_path / "rootfs", components_dir=comps, components=COMPONENTS)

    assert installed == ["limeos-installer"]
    assert "Skipping optional component: window-manager" in caplog.text
    assert not (tmp_path / "rootfs/usr/local/bin/limeos-window-manager").exists()


def test_required_component_missing(fs, tmp_path):
    comps = tmp_path / "components"
    comps.mkdir()
    with pytest.raises(ComponentInstallError) as excinfo:
        install_components(fs, rootfs=tmp_path / "rootfs", components_dir=comps, components=COMPONENTS)
    assert excinfo.value.component == "installation-wizard"


def test_spec_from_raw_defaults():
    spec = ComponentSpec.from_raw({"source": "display-manager", "required": False})
    assert spec.installed == "display-manager"
    assert spec.repository == "display-manager"
    assert spec.required is False

    with pytest.raises(ValueError):
        ComponentSpec.from_raw({"installed": "x"})
