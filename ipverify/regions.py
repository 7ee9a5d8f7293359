"""US state and territory lookup tables.

Codes are the canonical form used for every comparison. Names are matched
case-insensitively; there is no partial or fuzzy matching.
"""

from types import MappingProxyType
from typing import Any

from pydantic import BaseModel

REGION_NAMES = MappingProxyType({
    "AL": "Alabama",
    "AK": "Alaska",
    "AZ": "Arizona",
    "AR": "Arkansas",
    "CA": "California",
    "CO": "Colorado",
    "CT": "Connecticut",
    "DE": "Delaware",
    "FL": "Florida",
    "GA": "Georgia",
    "HI": "Hawaii",
    "ID": "Idaho",
    "IL": "Illinois",
    "IN": "Indiana",
    "IA": "Iowa",
    "KS": "Kansas",
    "KY": "Kentucky",
    "LA": "Louisiana",
    "ME": "Maine",
    "MD": "Maryland",
    "MA": "Massachusetts",
    "MI": "Michigan",
    "MN": "Minnesota",
    "MS": "Mississippi",
    "MO": "Missouri",
    "MT": "Montana",
    "NE": "Nebraska",
    "NV": "Nevada",
    "NH": "New Hampshire",
    "NJ": "New Jersey",
    "NM": "New Mexico",
    "NY": "New York",
    "NC": "North Carolina",
    "ND": "North Dakota",
    "OH": "Ohio",
    "OK": "Oklahoma",
    "OR": "Oregon",
    "PA": "Pennsylvania",
    "RI": "Rhode Island",
    "SC": "South Carolina",
    "SD": "South Dakota",
    "TN": "Tennessee",
    "TX": "Texas",
    "UT": "Utah",
    "VT": "Vermont",
    "VA": "Virginia",
    "WA": "Washington",
    "WV": "West Virginia",
    "WI": "Wisconsin",
    "WY": "Wyoming",
    "DC": "District of Columbia",
    "PR": "Puerto Rico",
    "GU": "Guam",
    "VI": "U.S. Virgin Islands",
    "AS": "American Samoa",
    "MP": "Northern Mariana Islands",
})

_CODES_BY_NAME = MappingProxyType({name.lower(): code for code, name in REGION_NAMES.items()})


class Region(BaseModel):
    """A normalized region; both fields are empty when the input was not recognized."""

    code: str = ""
    name: str = ""

    @property
    def known(self) -> bool:
        return bool(self.code)


def normalize_region(value: Any) -> Region:
    """Canonicalize a free-form state string to a code and name.

    Example:
        >>> normalize_region(" pa ")
        Region(code='PA', name='Pennsylvania')
        >>> normalize_region("new york")
        Region(code='NY', name='New York')
        >>> normalize_region("Not A State")
        Region(code='', name='')
    """
    if not isinstance(value, str):
        return Region()

    trimmed = value.strip()
    upper = trimmed.upper()
    if upper in REGION_NAMES:
        return Region(code=upper, name=REGION_NAMES[upper])

    code = _CODES_BY_NAME.get(trimmed.lower())
    if code:
        return Region(code=code, name=REGION_NAMES[code])

    return Region()


def region_name(code: str) -> str:
    """Full name for a code, or an empty string."""
    return REGION_NAMES.get(code.strip().upper(), "") if code else ""
