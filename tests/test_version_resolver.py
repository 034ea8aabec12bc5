import pytest

from pyenvman.core.errors import InvalidVersionFormat, UnsupportedVersion, VersionNotInCatalog
from pyenvman.core.version_catalog import VersionCatalog
from pyenvman.core.version_resolver import ResolvedVersion, VersionResolver


def test_series_resolves_to_latest_patch(catalog: VersionCatalog) -> None:
    resolver = VersionResolver(catalog)

    result = resolver.resolve("3.11")

    assert result.version == "3.11.10"
    assert result.series == "3.11"
    assert result.not_latest is False
    # Resolution is deterministic for the same catalog.
    assert resolver.resolve(" 3.11 ") == ResolvedVersion("3.11", "3.11.10", "3.11", "3.11.10")


def test_explicit_patch_is_kept_and_flagged(catalog: VersionCatalog) -> None:
    result = VersionResolver(catalog).resolve("3.11.9")

    assert result.version == "3.11.9"
    assert result.latest == "3.11.10"
    assert result.not_latest is True


def test_explicit_latest_patch_is_not_flagged(catalog: VersionCatalog) -> None:
    result = VersionResolver(catalog).resolve("3.11.10")

    assert result.version == "3.11.10"
    assert result.not_latest is False


def test_explicit_patch_outside_known_list_is_returned_unchanged(catalog: VersionCatalog) -> None:
    result = VersionResolver(catalog).resolve("3.11.2")

    assert result.version == "3.11.2"
    assert result.not_latest is True


def test_unknown_series_lists_available(catalog: VersionCatalog) -> None:
    with pytest.raises(VersionNotInCatalog) as excinfo:
        VersionResolver(catalog).resolve("3.99")

    assert excinfo.value.available == ["3.10", "3.11", "3.12"]


@pytest.mark.parametrize("spec", ["", "3", "three.eleven", "3.11.1.1", "3.11-dev"])
def test_invalid_format(catalog: VersionCatalog, spec: str) -> None:
    with pytest.raises(InvalidVersionFormat):
        VersionResolver(catalog).resolve(spec)


def test_check_supported_range(catalog: VersionCatalog) -> None:
    resolver = VersionResolver(catalog, min_version="3.11", max_version="3.12")

    resolver.check_supported("3.11.4")
    resolver.check_supported("3.12.0")
    with pytest.raises(UnsupportedVersion):
        resolver.check_supported("3.10.14")
    with pytest.raises(UnsupportedVersion):
        resolver.check_supported("3.13.0")


def test_empty_max_version_is_unbounded(catalog: VersionCatalog) -> None:
    VersionResolver(catalog, min_version="3.6", max_version="").check_supported("4.0.0")


def test_single_series_catalog() -> None:
    resolver = VersionResolver(VersionCatalog.parse("3.11=3.11.10\n"))

    assert resolver.resolve("3.11").version == "3.11.10"
    flagged = resolver.resolve("3.11.5")
    assert flagged.version == "3.11.5"
    assert flagged.not_latest


def test_series_without_valid_versions_is_not_in_catalog() -> None:
    catalog = VersionCatalog.parse("3.12=3.12.4\n3.13.versions=x,\n")

    with pytest.raises(VersionNotInCatalog):
        VersionResolver(catalog).resolve("3.13")
