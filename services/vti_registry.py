# ============================================================================
# VTI REGISTRY SERVICE
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Domain service - Provenance graph maintenance
# PURPOSE: Create VTIs, mutate status/metadata, link VTIs without cycles
# CREATED: 04 OCT 2026
# ============================================================================
"""
VtiRegistryService

Owns every write to the vti_registry table except the carbon footprint
aggregate (which the carbon repository increments inside its own
transaction).

Rules enforced here:
- type must be a known VtiType
- every linked id must exist
- the link graph stays acyclic (bounded breadth-first walk)
- status changes follow VTI_STATUS_TRANSITIONS
- metadata.carbonFootprintKgCO2e starts at 0 and is never set by callers
"""

from typing import Any, Dict, Iterable, List, Optional, Union

from psycopg_pool import AsyncConnectionPool

from core.config import TraceabilityDefaults, get_defaults
from core.contracts import VTI_STATUS_TRANSITIONS, VtiStatus, VtiType
from core.errors import CycleError, GraphDepthExceededError, NotFoundError, ValidationError
from core.logging import get_logger
from core.models.vti import CARBON_FOOTPRINT_KEY, Vti
from core.observability import track_metric
from repositories import VtiRepository

logger = get_logger(__name__)


def _dedupe(ids: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for vti_id in ids:
        if vti_id not in seen:
            seen.add(vti_id)
            result.append(vti_id)
    return result


class VtiRegistryService:
    """Business rules for VTI creation and mutation."""

    def __init__(
        self,
        pool: Optional[AsyncConnectionPool],
        repo: Optional[VtiRepository] = None,
        defaults: Optional[TraceabilityDefaults] = None,
    ):
        self.pool = pool
        self.repo = repo or VtiRepository(pool)
        self.defaults = defaults or get_defaults().traceability

    # ================================================================
    # CREATE
    # ================================================================

    async def create(
        self,
        vti_type: Union[VtiType, str],
        linked_vtis: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        is_public_traceable: bool = False,
        vti_id: Optional[str] = None,
    ) -> Vti:
        """
        Register a new VTI.

        Raises:
            ValidationError: unknown type, or vti_id already taken
            NotFoundError: a linked id does not exist
            CycleError: the new VTI would sit on a cycle
            GraphDepthExceededError: the linked subgraph is deeper than allowed
        """
        vti_type = self._parse_type(vti_type)
        links = _dedupe(linked_vtis or [])

        if vti_id is not None:
            if not vti_id.strip():
                raise ValidationError("vtiId must not be blank", field="vtiId", value=vti_id)
            if await self.repo.get(vti_id) is not None:
                raise ValidationError(f"VTI id already exists: {vti_id}", field="vtiId", value=vti_id)

        vti = Vti(
            vti_type=vti_type,
            linked_vtis=links,
            metadata={**(metadata or {}), CARBON_FOOTPRINT_KEY: 0},
            is_public_traceable=is_public_traceable,
        )
        if vti_id is not None:
            vti.vti_id = vti_id

        await self._require_existing(links)
        await self._check_acyclic(vti.vti_id, links)

        created = await self.repo.create(vti)
        track_metric("vti.created", tags={"type": vti_type.value})
        return created

    # ================================================================
    # READ
    # ================================================================

    async def get(self, vti_id: str) -> Vti:
        vti = await self.repo.get(vti_id)
        if vti is None:
            raise NotFoundError("VTI", vti_id, field="vtiId")
        return vti

    # ================================================================
    # MUTATE
    # ================================================================

    async def update_metadata(self, vti_id: str, patch: Dict[str, Any]) -> Vti:
        """
        Merge ``patch`` into the VTI's metadata.

        Top-level keys replace wholesale; nested objects are not deep-merged.
        """
        if CARBON_FOOTPRINT_KEY in patch:
            raise ValidationError(
                f"{CARBON_FOOTPRINT_KEY} is maintained by the carbon calculator",
                field=f"metadata.{CARBON_FOOTPRINT_KEY}",
            )
        if not patch:
            return await self.get(vti_id)

        updated = await self.repo.merge_metadata(vti_id, patch)
        if updated is None:
            raise NotFoundError("VTI", vti_id, field="vtiId")

        logger.info(f"Updated metadata of VTI {vti_id}: keys={sorted(patch)}")
        return updated

    async def update_status(self, vti_id: str, status: Union[VtiStatus, str]) -> Vti:
        """Move a VTI to a new lifecycle status."""
        try:
            new_status = VtiStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown VTI status: {status}", field="status", value=status)

        current = await self.get(vti_id)
        if current.status == new_status:
            return current

        if new_status not in VTI_STATUS_TRANSITIONS[current.status]:
            raise ValidationError(
                f"Cannot move VTI {vti_id} from {current.status.value} to {new_status.value}",
                field="status",
                value=new_status.value,
            )

        updated = await self.repo.update_status(vti_id, current.status, new_status)
        if updated is None:
            raise ValidationError(
                f"Status of VTI {vti_id} changed concurrently, retry",
                field="status",
                value=new_status.value,
            )

        logger.info(f"VTI {vti_id}: {current.status.value} -> {new_status.value}")
        return updated

    async def link_vtis(self, vti_id: str, linked_ids: List[str]) -> Vti:
        """Add references from an existing VTI to other existing VTIs."""
        current = await self.get(vti_id)
        new_links = [i for i in _dedupe(linked_ids) if i not in current.linked_vtis]
        if not new_links:
            return current

        await self._require_existing(new_links)
        await self._check_acyclic(vti_id, new_links)

        updated = await self.repo.add_links(vti_id, new_links)
        if updated is None:
            raise NotFoundError("VTI", vti_id, field="vtiId")

        logger.info(f"Linked VTI {vti_id} -> {new_links}")
        return updated

    # ================================================================
    # VALIDATION
    # ================================================================

    def _parse_type(self, vti_type: Union[VtiType, str]) -> VtiType:
        try:
            return VtiType(vti_type)
        except ValueError:
            raise ValidationError(f"Unknown VTI type: {vti_type}", field="type", value=vti_type)

    async def _require_existing(self, ids: List[str]) -> None:
        if not ids:
            return
        found = await self.repo.get_many(ids)
        for linked_id in ids:
            if linked_id not in found:
                raise NotFoundError("VTI", linked_id, field="linkedVtis")

    async def _check_acyclic(self, vti_id: str, linked_ids: List[str]) -> None:
        """
        Reject links whose transitive closure reaches ``vti_id``.

        Breadth-first, one get_links round trip per depth level.

        Raises:
            CycleError: with the path vti_id -> ... -> vti_id
            GraphDepthExceededError: walk deeper than max_graph_depth
        """
        if vti_id in linked_ids:
            raise CycleError(vti_id, [vti_id, vti_id])

        parents: Dict[str, str] = {linked_id: vti_id for linked_id in linked_ids}
        frontier = list(linked_ids)
        depth = 0

        while frontier:
            depth += 1
            if depth > self.defaults.max_graph_depth:
                raise GraphDepthExceededError(vti_id, self.defaults.max_graph_depth)

            links = await self.repo.get_links(frontier)
            next_frontier = []
            for node in frontier:
                for child in links.get(node, []):
                    if child == vti_id:
                        raise CycleError(vti_id, self._path_to(node, parents, vti_id))
                    if child not in parents:
                        parents[child] = node
                        next_frontier.append(child)
            frontier = next_frontier

    @staticmethod
    def _path_to(node: str, parents: Dict[str, str], root: str) -> List[str]:
        path = [node]
        while path[-1] != root:
            path.append(parents[path[-1]])
        path.reverse()
        path.append(root)
        return path
