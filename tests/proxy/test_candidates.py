import pytest
from assertpy import assert_that

from ipverify.proxy import candidates
from ipverify.proxy.candidates import PRIMARY_POSTAL_CODES, select_candidates
from ipverify.regions import REGION_NAMES


def test_primary_comes_first():
    result = select_candidates("PA")

    assert result[0] == "17101"
    assert_that(result).contains("19103", "15222").does_not_contain_duplicates()


def test_primary_listed_again_in_secondary_is_not_duplicated(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(
        candidates, "SECONDARY_POSTAL_CODES", {"PA": ("19103", "17101", "15222", "19103")}
    )

    assert select_candidates("PA") == ["17101", "19103", "15222"]


def test_region_without_secondary_codes():
    assert select_candidates("WY") == ["82001"]


@pytest.mark.parametrize("code", ["", "ZZ", "Pennsylvania"])
def test_unknown_region_has_no_candidates(code: str):
    assert select_candidates(code) == []


def test_limit_caps_candidates():
    assert select_candidates("CA", limit=2) == ["95814", "90012"]
    assert len(select_candidates("CA", limit=0)) == 5


def test_every_region_has_a_primary():
    assert set(PRIMARY_POSTAL_CODES) == set(REGION_NAMES)
    for postal_code in PRIMARY_POSTAL_CODES.values():
        assert_that(postal_code).is_length(5).is_digit()
