"""Postal-code candidates used as routing hints when requesting a proxy egress.

Each region has a primary code (its capital) and, for the more populous
regions, a few secondary city codes. Candidates are tried in list order,
primary first.
"""

from types import MappingProxyType

from loguru import logger

logger = logger.bind(topic="proxy_candidates")

PRIMARY_POSTAL_CODES = MappingProxyType({
    "AL": "36104",  # Montgomery
    "AK": "99801",  # Juneau
    "AZ": "85001",  # Phoenix
    "AR": "72201",  # Little Rock
    "CA": "95814",  # Sacramento
    "CO": "80202",  # Denver
    "CT": "06103",  # Hartford
    "DE": "19901",  # Dover
    "FL": "32301",  # Tallahassee
    "GA": "30303",  # Atlanta
    "HI": "96813",  # Honolulu
    "ID": "83702",  # Boise
    "IL": "62701",  # Springfield
    "IN": "46204",  # Indianapolis
    "IA": "50309",  # Des Moines
    "KS": "66603",  # Topeka
    "KY": "40601",  # Frankfort
    "LA": "70802",  # Baton Rouge
    "ME": "04330",  # Augusta
    "MD": "21401",  # Annapolis
    "MA": "02108",  # Boston
    "MI": "48933",  # Lansing
    "MN": "55102",  # Saint Paul
    "MS": "39201",  # Jackson
    "MO": "65101",  # Jefferson City
    "MT": "59601",  # Helena
    "NE": "68508",  # Lincoln
    "NV": "89701",  # Carson City
    "NH": "03301",  # Concord
    "NJ": "08608",  # Trenton
    "NM": "87501",  # Santa Fe
    "NY": "12207",  # Albany
    "NC": "27601",  # Raleigh
    "ND": "58501",  # Bismarck
    "OH": "43215",  # Columbus
    "OK": "73102",  # Oklahoma City
    "OR": "97301",  # Salem
    "PA": "17101",  # Harrisburg
    "RI": "02903",  # Providence
    "SC": "29201",  # Columbia
    "SD": "57501",  # Pierre
    "TN": "37219",  # Nashville
    "TX": "78701",  # Austin
    "UT": "84111",  # Salt Lake City
    "VT": "05602",  # Montpelier
    "VA": "23219",  # Richmond
    "WA": "98501",  # Olympia
    "WV": "25301",  # Charleston
    "WI": "53703",  # Madison
    "WY": "82001",  # Cheyenne
    "DC": "20001",
    "PR": "00901",  # San Juan
    "GU": "96910",  # Hagatna
    "VI": "00802",  # Charlotte Amalie
    "AS": "96799",  # Pago Pago
    "MP": "96950",  # Saipan
})

# Curated for a subset of regions only
SECONDARY_POSTAL_CODES = MappingProxyType({
    "AZ": ("85701",),  # Tucson
    "CA": ("90012", "94102", "92101", "95113"),  # Los Angeles, San Francisco, San Diego, San Jose
    "CO": ("80903",),  # Colorado Springs
    "FL": ("33130", "33602", "32801", "32202"),  # Miami, Tampa, Orlando, Jacksonville
    "GA": ("31401",),  # Savannah
    "IL": ("60601", "61602"),  # Chicago, Peoria
    "MA": ("01608",),  # Worcester
    "MI": ("48226", "49503"),  # Detroit, Grand Rapids
    "MO": ("63101", "64106"),  # St. Louis, Kansas City
    "NC": ("28202",),  # Charlotte
    "NJ": ("07102",),  # Newark
    "NY": ("10001", "14202", "14604"),  # New York, Buffalo, Rochester
    "OH": ("44113", "45202"),  # Cleveland, Cincinnati
    "PA": ("19103", "15222"),  # Philadelphia, Pittsburgh
    "TN": ("38103",),  # Memphis
    "TX": ("77002", "75201", "78205"),  # Houston, Dallas, San Antonio
    "WA": ("98101",),  # Seattle
})


def select_candidates(region_code: str, limit: int = 0) -> list[str]:
    """Build the ordered list of postal codes to try for a region.

    Args:
        region_code: Normalized two-letter region code
        limit: Maximum number of candidates, 0 for no cap

    Returns:
        Postal codes, primary first, without duplicates. Empty for an
        unrecognized region.

    Example:
        >>> select_candidates("PA")
        ['17101', '19103', '15222']
        >>> select_candidates("WY")
        ['82001']
        >>> select_candidates("")
        []
    """
    code = region_code.strip().upper() if region_code else ""
    primary = PRIMARY_POSTAL_CODES.get(code)
    if not primary:
        logger.debug("No candidates for region", region_code=code)
        return []

    candidates: list[str] = [primary]
    for postal_code in SECONDARY_POSTAL_CODES.get(code, ()):
        if postal_code not in candidates:
            candidates.append(postal_code)

    if limit > 0:
        candidates = candidates[:limit]

    logger.debug(
        f"Selected {len(candidates)} candidates",
        region_code=code,
        candidates=candidates,
    )
    return candidates
