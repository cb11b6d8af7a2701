"""
Hierarchy resolver.

Walks the sponsor chain of an affiliate. The walk is bounded by the
requested number of levels and by a visited set, so a corrupted sponsor
graph can shorten a chain but never hang or crash it.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.config.settings import settings
from affiliate_engine.models.enums import AffiliateCategory, AffiliateStatus
from affiliate_engine.repositories.affiliate_repository import AffiliateRepository


@dataclass(frozen=True)
class ChainNode:
    """Ancestor of an affiliate at a given hierarchy level (1 = sponsor)."""

    affiliate_id: int
    level: int
    status: str
    category: str

    @property
    def is_active(self) -> bool:
        """Check if the node can receive payouts."""
        return self.status == AffiliateStatus.ACTIVE

    @property
    def category_enum(self) -> AffiliateCategory | None:
        """Category as enum member, None when the stored value is unknown."""
        try:
            return AffiliateCategory(self.category)
        except ValueError:
            return None


@dataclass
class HierarchyChain:
    """Result of a sponsor chain walk."""

    affiliate_id: int
    nodes: list[ChainNode] = field(default_factory=list)
    integrity_warnings: list[str] = field(default_factory=list)

    def __iter__(self) -> Iterator[ChainNode]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def direct_sponsor(self) -> ChainNode | None:
        """Level-1 node, if the affiliate has a sponsor."""
        return self.nodes[0] if self.nodes else None

    @property
    def ids(self) -> list[int]:
        """Ancestor IDs, immediate sponsor first."""
        return [node.affiliate_id for node in self.nodes]


class HierarchyResolver:
    """Read-only access to sponsor chains."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize hierarchy resolver."""
        self.session = session
        self.affiliate_repo = AffiliateRepository(session)

    async def resolve_chain(
        self, affiliate_id: int, max_levels: int | None = None
    ) -> HierarchyChain:
        """
        Get the sponsors of an affiliate, immediate sponsor first.

        The originating affiliate is never part of the chain. Reaching the
        root before max_levels hops returns a shorter chain.

        Args:
            affiliate_id: Affiliate to start from
            max_levels: Maximum number of ancestors (default: settings)

        Returns:
            HierarchyChain with up to max_levels nodes
        """
        if max_levels is None:
            max_levels = settings.hierarchy_max_depth

        chain = HierarchyChain(affiliate_id=affiliate_id)
        start = await self.affiliate_repo.get_link(affiliate_id)
        if start is None:
            return chain

        visited = {affiliate_id}
        sponsor_id = start.sponsor_id

        while sponsor_id is not None and len(chain.nodes) < max_levels:
            if sponsor_id in visited:
                self._warn(
                    chain,
                    f"Hierarchy cycle at affiliate {sponsor_id}",
                    sponsor_id=sponsor_id,
                    chain_ids=chain.ids,
                )
                break

            link = await self.affiliate_repo.get_link(sponsor_id)
            if link is None:
                self._warn(
                    chain,
                    f"Orphaned sponsor reference {sponsor_id}",
                    sponsor_id=sponsor_id,
                    chain_ids=chain.ids,
                )
                break

            visited.add(sponsor_id)
            chain.nodes.append(
                ChainNode(
                    affiliate_id=link.id,
                    level=len(chain.nodes) + 1,
                    status=link.status,
                    category=link.category,
                )
            )
            sponsor_id = link.sponsor_id

        logger.debug(
            "Sponsor chain resolved",
            extra={
                "affiliate_id": affiliate_id,
                "max_levels": max_levels,
                "chain_length": len(chain),
            },
        )
        return chain

    @staticmethod
    def _warn(chain: HierarchyChain, message: str, **context) -> None:
        chain.integrity_warnings.append(message)
        logger.warning(
            message,
            extra={"affiliate_id": chain.affiliate_id, "integrity": True, **context},
        )
