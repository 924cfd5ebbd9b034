# ============================================================================
# REGION RESOLVERS
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Collaborator - Actor region lookup
# PURPOSE: Map an actorRef to the region used for emission factor lookup
# CREATED: 04 OCT 2026
# ============================================================================
"""
Region Resolvers

The carbon calculator asks a RegionResolver for the acting user's region
and wraps the call in a timeout. Returning None (or failing) makes the
calculator fall back to "Global".

Implementations:
    StaticRegionResolver          fixed answer (default, tests)
    ProfileServiceRegionResolver  GET {base_url}/profiles/{actorRef} -> region
"""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class RegionResolver:
    """Interface: resolve an actor's region."""

    async def region_for(self, actor_ref: str) -> Optional[str]:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class StaticRegionResolver(RegionResolver):
    """Always returns the same region (None means Global)."""

    def __init__(self, region: Optional[str] = None):
        self.region = region

    async def region_for(self, actor_ref: str) -> Optional[str]:
        return self.region


class ProfileServiceRegionResolver(RegionResolver):
    """
    Looks the region up in the platform's profile service.

    404 means the actor has no profile and resolves to None. Other HTTP
    and transport errors propagate; the calculator treats them as Global.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 2.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout),
        )

    async def region_for(self, actor_ref: str) -> Optional[str]:
        resp = await self._client.get(f"/profiles/{actor_ref}")
        if resp.status_code == 404:
            logger.debug(f"No profile for actor {actor_ref}")
            return None
        resp.raise_for_status()

        region = resp.json().get("region")
        return str(region) if region else None

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["RegionResolver", "StaticRegionResolver", "ProfileServiceRegionResolver"]
