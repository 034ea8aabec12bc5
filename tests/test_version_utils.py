import pytest

from pyenvman.core import version_utils


@pytest.mark.parametrize(
    "left,right,expected",
    [
        ("3.11.9", "3.11.10", -1),
        ("3.11.10", "3.12.0", -1),
        ("3.12.0", "3.12.0", 0),
        ("3.12", "3.12.0", 0),
        ("3.10", "3.9", 1),
    ],
)
def test_compare_versions_is_numeric(left: str, right: str, expected: int) -> None:
    assert version_utils.compare_versions(left, right) == expected


def test_sort_versions_desc_dedups_and_orders_numerically() -> None:
    versions = ["3.11.9", "3.11.10", "3.11.8", "3.11.10", "3.11.1"]

    assert version_utils.sort_versions_desc(versions) == ["3.11.10", "3.11.9", "3.11.8", "3.11.1"]
    assert version_utils.sort_versions_asc(["3.9", "3.10", "3.6"]) == ["3.6", "3.9", "3.10"]


def test_max_version() -> None:
    assert version_utils.max_version(["3.11.9", "3.11.10"]) == "3.11.10"
    assert version_utils.max_version([]) is None


@pytest.mark.parametrize("spec", ["3.11", "3.11.10", "10.0.1"])
def test_is_version_spec_accepts(spec: str) -> None:
    assert version_utils.is_version_spec(spec)


@pytest.mark.parametrize("spec", ["3", "3.11.x", "v3.11", "3.11.10.1", "", "latest"])
def test_is_version_spec_rejects(spec: str) -> None:
    assert not version_utils.is_version_spec(spec)


def test_series_helpers() -> None:
    assert version_utils.is_series("3.11")
    assert not version_utils.is_series("3.11.1")
    assert version_utils.is_full_version("3.11.1")
    assert version_utils.series_of("3.11.10") == "3.11"
    assert version_utils.series_of("3.11") == "3.11"
