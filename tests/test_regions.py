import pytest
from assertpy import assert_that

from ipverify.regions import REGION_NAMES, Region, normalize_region, region_name


@pytest.mark.parametrize("code", sorted(REGION_NAMES))
def test_code_and_name_normalize_to_same_region(code: str):
    by_code = normalize_region(code)
    by_name = normalize_region(REGION_NAMES[code])

    assert by_code == by_name
    assert by_code.code == code


def test_normalize_is_case_insensitive_and_trimmed():
    assert normalize_region("  pa ") == Region(code="PA", name="Pennsylvania")
    assert normalize_region("NEW YORK") == Region(code="NY", name="New York")
    assert normalize_region("\tdistrict of columbia\n").code == "DC"


@pytest.mark.parametrize("value", ["", "   ", "Not A State", "Penn", "P", "XX", None, 42])
def test_unrecognized_input_yields_empty_region(value: object):
    region = normalize_region(value)

    assert region == Region()
    assert not region.known


def test_mapping_is_bijective():
    names = [name.lower() for name in REGION_NAMES.values()]
    assert_that(names).does_not_contain_duplicates()
    assert_that(list(REGION_NAMES)).is_length(len(names))
    for code in REGION_NAMES:
        assert_that(code).is_length(2).is_upper()


def test_region_name():
    assert region_name("tx") == "Texas"
    assert region_name("") == ""
    assert region_name("ZZ") == ""
