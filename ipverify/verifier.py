"""Corroborate a claimed US state against network-observed location.

Candidates for the claimed region are tried in order: each gets a fresh
proxy credential and is geolocated first through the tunnel, then by
discovering the proxy's egress address. The first candidate whose observed
region equals the claim wins. If none does, the caller's own address is
looked up instead.

The verifier never raises: every external failure degrades to an
inconclusive attempt, and the worst outcome is a result with
``match == "Unknown"``.
"""

import asyncio
from collections.abc import Awaitable
from enum import Enum
from typing import Literal

from loguru import logger
from pydantic import BaseModel, Field

from ipverify.geo import GeoResult, geo_via_ip_discovery, geo_via_tunnel, lookup_ip
from ipverify.logs import log_decorator
from ipverify.masking import mask_ip
from ipverify.proxy.candidates import select_candidates
from ipverify.proxy.credentials import CredentialResolver, default_resolvers, resolve_credential
from ipverify.regions import Region, normalize_region
from ipverify.settings import settings

logger = logger.bind(topic="verifier")

MatchVerdict = Literal["Yes", "No", "Unknown"]
ObservationSource = Literal["proxy", "client"]


class VerificationResult(BaseModel):
    """Outcome handed to the persistence collaborator.

    Attributes:
        ip_masked: Observed address truncated by mask_ip
        source: "proxy" if a candidate matched, otherwise "client"
        region_code: Observed region code, empty if unknown
        region_name: Observed region name
        postal: Observed postal code
        match: "Yes"/"No" by code equality, "Unknown" when either code is empty
    """

    ip_masked: str = ""
    source: ObservationSource = "client"
    region_code: str = ""
    region_name: str = ""
    postal: str = ""
    match: MatchVerdict = "Unknown"

    # for logging only, not stored
    claimed_code: str = Field(default="", exclude=True)
    candidates_tried: int = Field(default=0, exclude=True)


class LoopState(str, Enum):
    SEARCHING = "searching"
    MATCHED = "matched"
    EXHAUSTED = "exhausted"
    DEADLINE = "deadline"


def compute_match(claimed_code: str, observed_code: str) -> MatchVerdict:
    """Three-valued verdict.

    Example:
        >>> compute_match("TX", "TX")
        'Yes'
        >>> compute_match("TX", "NY")
        'No'
        >>> compute_match("", "TX")
        'Unknown'
    """
    if not claimed_code or not observed_code:
        return "Unknown"
    return "Yes" if claimed_code.upper() == observed_code.upper() else "No"


class _CandidateSearch:
    """Explicit state loop over candidates; ends MATCHED, EXHAUSTED or DEADLINE."""

    def __init__(self, region: Region, candidates: list[str], resolvers: list[CredentialResolver]):
        self.region = region
        self.candidates = candidates
        self.resolvers = resolvers
        self.state = LoopState.SEARCHING
        self.tried = 0
        self.matched: GeoResult | None = None

    async def run(self) -> None:
        for index, postal_code in enumerate(self.candidates, start=1):
            self.tried = index
            result = await self._try_candidate(index, postal_code)
            if result is not None:
                self.matched = result
                self.state = LoopState.MATCHED
                return
        self.state = LoopState.EXHAUSTED

    async def _try_candidate(self, index: int, postal_code: str) -> GeoResult | None:
        total = len(self.candidates)
        logger.info(
            f"Attempting candidate {index}/{total}",
            postal_code=postal_code,
            claimed_code=self.region.code,
        )

        credential = await resolve_credential(self.resolvers, postal_code)
        if credential is None:
            logger.warning(f"✗ Skipping candidate {index}/{total}: no credential", postal_code=postal_code)
            return None

        direct = await _attempt(geo_via_tunnel(credential), "geo_via_tunnel", postal_code)
        if self._matches(direct):
            logger.info(
                f"✓ Region matched through tunnel at candidate {index}/{total}",
                postal_code=postal_code,
                region_code=direct.region_code,
            )
            return direct

        discovered = await _attempt(
            geo_via_ip_discovery(credential), "geo_via_ip_discovery", postal_code
        )
        if self._matches(discovered):
            logger.info(
                f"✓ Region matched via egress discovery at candidate {index}/{total}",
                postal_code=postal_code,
                region_code=discovered.region_code,
            )
            return discovered

        logger.warning(
            f"✗ Candidate {index}/{total} exhausted",
            postal_code=postal_code,
            claimed_code=self.region.code,
            direct_region=direct.region_code,
            discovered_region=discovered.region_code,
        )
        return None

    def _matches(self, result: GeoResult) -> bool:
        return bool(self.region.code) and result.conclusive and result.region_code == self.region.code


async def _attempt(coro: Awaitable[GeoResult], name: str, postal_code: str) -> GeoResult:
    """Await one geo call; any exception becomes an inconclusive result."""
    try:
        return await coro
    except Exception as e:
        logger.warning(
            f"Unexpected error in {name}",
            postal_code=postal_code,
            error=str(e),
            error_type=type(e).__name__,
        )
        return GeoResult()


@log_decorator
async def verify_claimed_region(
    claimed_state: str | None,
    client_ip: str | None,
    *,
    resolvers: list[CredentialResolver] | None = None,
    deadline: float | None = None,
) -> VerificationResult:
    """Verify a self-reported state against an observed network location.

    Args:
        claimed_state: State name or two-letter code as submitted
        client_ip: Caller's observed address, may be empty or private
        resolvers: Credential resolvers in priority order, defaults to settings
        deadline: Seconds allowed for the candidate loop, defaults to VERIFY_DEADLINE

    Returns:
        VerificationResult, always well-formed
    """
    region = normalize_region(claimed_state)
    if not region.known:
        logger.warning("Claimed region not recognized, verdict will be Unknown")

    try:
        if resolvers is None:
            resolvers = default_resolvers()
    except Exception as e:
        logger.warning("Could not build credential resolvers", error=str(e))
        resolvers = []

    candidates = select_candidates(region.code, limit=settings.MAX_CANDIDATES)
    search = _CandidateSearch(region, candidates, resolvers)
    deadline = deadline if deadline is not None else settings.VERIFY_DEADLINE

    if candidates:
        try:
            async with asyncio.timeout(deadline):
                await search.run()
        except TimeoutError:
            search.state = LoopState.DEADLINE
            logger.warning(
                "Verification deadline reached, abandoning remaining candidates",
                deadline=deadline,
                candidates_tried=search.tried,
                candidates_total=len(candidates),
            )
        except Exception as e:
            search.state = LoopState.EXHAUSTED
            logger.warning("Candidate search failed", error=str(e), error_type=type(e).__name__)
    else:
        search.state = LoopState.EXHAUSTED

    if search.state is LoopState.MATCHED and search.matched is not None:
        observed = search.matched
        source: ObservationSource = "proxy"
    else:
        logger.info(
            "No candidate matched, falling back to client address",
            loop_state=search.state.value,
            candidates_tried=search.tried,
        )
        observed = await _attempt(lookup_ip(client_ip), "lookup_ip", "")
        source = "client"

    result = VerificationResult(
        ip_masked=mask_ip(observed.ip),
        source=source,
        region_code=observed.region_code,
        region_name=observed.region_name,
        postal=observed.postal,
        match=compute_match(region.code, observed.region_code),
        claimed_code=region.code,
        candidates_tried=search.tried,
    )
    logger.info(
        "Verification finished",
        claimed_code=region.code,
        source=result.source,
        ip_masked=result.ip_masked,
        region_code=result.region_code,
        match=result.match,
        candidates_tried=search.tried,
    )
    return result
