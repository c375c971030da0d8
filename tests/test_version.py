import pytest

from iso_builder.version import (
    InvalidVersionError,
    compare_versions,
    extract_major_version,
    strip_version_prefix,
    validate_version,
)


@pytest.mark.parametrize("version", ["1.2.3", "v1.2.3", "V10.0.0", "0.0.1"])
def test_valid_versions(version):
    assert validate_version(version) == version


@pytest.mark.parametrize("version", ["", "1.2", "1.2.3.4", "v", "1.2.x", "vv1.2.3", " 1.2.3", "1.2.3-rc1"])
def test_invalid_versions(version):
    with pytest.raises(InvalidVersionError):
        validate_version(version)


def test_strip_prefix():
    assert strip_version_prefix("v1.2.3") == "1.2.3"
    assert strip_version_prefix("1.2.3") == "1.2.3"


def test_major():
    assert extract_major_version("v2.10.3") == 2


def test_compare_is_numeric():
    assert compare_versions("1.10.0", "1.9.9") == 1
    assert compare_versions("v1.2.3", "1.2.3") == 0
    assert compare_versions("1.2.3", "1.2.4") == -1
