import pytest

from bladeop import version


def test_parse_combined_version_both_parts():
    assert version.parse_combined_version("1.7.4,community") == ("1.7.4", "community")


def test_parse_combined_version_empty_gives_defaults():
    assert version.parse_combined_version("") == (
        version.DEFAULT_VERSION,
        version.DEFAULT_PRODUCT,
    )
    assert version.DEFAULT_VERSION == "unknown"


def test_parse_combined_version_only_version():
    assert version.parse_combined_version("2.0.1") == ("2.0.1", version.DEFAULT_PRODUCT)


def test_parse_combined_version_custom_delimiter():
    assert version.parse_combined_version("1.0.0#ahas", "#") == ("1.0.0", "ahas")


def test_parse_combined_version_extra_fields_ignored():
    assert version.parse_combined_version("1.0.0,ahas,extra") == ("1.0.0", "ahas")


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1.5.0", True),
        ("1.7.4", True),
        ("2.0.0", True),
        ("1.5.1", True),
        ("1.4.9", False),
        ("0.9.9", False),
        ("1.5", False),
        ("1.5.0.1", False),
        ("1.x.0", False),
        ("unknown", False),
    ],
)
def test_check_version_has_cri_command(text, expected):
    assert version.check_version_has_cri_command(text) is expected


def test_cri_version_itself_qualifies():
    assert version.check_version_has_cri_command(version.CRI_VERSION) is True