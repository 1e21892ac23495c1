import pytest

from bladeoperator.version import (
    DEFAULT_PRODUCT,
    DEFAULT_VERSION,
    parse_combined_version,
)


def test_empty_combined_keeps_defaults():
    assert parse_combined_version("") == ("unknown", "community")


def test_defaults_match_constants():
    assert parse_combined_version("", ",") == (DEFAULT_VERSION, DEFAULT_PRODUCT)


def test_version_and_product():
    assert parse_combined_version("1.0.0,community") == ("1.0.0", "community")


def test_version_only_keeps_default_product():
    assert parse_combined_version("1.2.0") == ("1.2.0", DEFAULT_PRODUCT)


def test_extra_fields_ignored():
    assert parse_combined_version("1.0.0,ahas,extra") == ("1.0.0", "ahas")


def test_custom_delimiter():
    assert parse_combined_version("2.0.0#ahas", "#") == ("2.0.0", "ahas")


@pytest.mark.parametrize("combined", ["0.9.0,x", "3.1.4,prod"])
def test_round_trip_with_join(combined):
    version, product = parse_combined_version(combined)
    assert ",".join([version, product]) == combined


def test_trailing_delimiter_gives_empty_product():
    version, product = parse_combined_version("1.0.0,")
    assert version == "1.0.0"
    assert product == ""