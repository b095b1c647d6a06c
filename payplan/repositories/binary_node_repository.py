"""
Binary node repository.

Placement lookups, atomic volume increments and match updates.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Select, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from payplan.models.binary_node import BinaryNode
from payplan.models.enums import NodePosition
from payplan.repositories.base import BaseRepository


class BinaryNodeRepository(BaseRepository[BinaryNode]):
    """Binary node repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize binary node repository."""
        super().__init__(BinaryNode, session)

    async def get_by_user_id(self, user_id: int) -> BinaryNode | None:
        """
        Get node by owner.

        Args:
            user_id: User ID

        Returns:
            Node or None
        """
        stmt = select(BinaryNode).where(BinaryNode.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def lock_by_user_id(self, user_id: int) -> BinaryNode | None:
        """
        Get node with row lock (SELECT FOR UPDATE).

        Always re-reads the row, even if it is already in the identity map.

        Args:
            user_id: User ID

        Returns:
            Locked node or None
        """
        stmt = (
            select(BinaryNode)
            .where(BinaryNode.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_user_ids(self, user_ids: list[int]) -> list[BinaryNode]:
        """
        Get nodes for several owners.

        Args:
            user_ids: User IDs

        Returns:
            Nodes found (order not guaranteed)
        """
        if not user_ids:
            return []
        stmt = select(BinaryNode).where(BinaryNode.user_id.in_(user_ids))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add_volume(
        self, user_id: int, side: NodePosition, amount: Decimal
    ) -> int:
        """
        Atomically add volume to one leg.

        Increments both lifetime volume and carry-forward, so it
        commutes with a concurrent match on the same node.

        Args:
            user_id: Ancestor user ID
            side: LEFT or RIGHT
            amount: Volume to add

        Returns:
            Number of rows updated
        """
        if side == NodePosition.LEFT:
            values = {
                "left_volume": BinaryNode.left_volume + amount,
                "left_unmatched": BinaryNode.left_unmatched + amount,
            }
        elif side == NodePosition.RIGHT:
            values = {
                "right_volume": BinaryNode.right_volume + amount,
                "right_unmatched": BinaryNode.right_unmatched + amount,
            }
        else:
            raise ValueError(f"Cannot add volume to side {side}")

        stmt = (
            update(BinaryNode)
            .where(BinaryNode.user_id == user_id)
            .values(**values)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    def eligible_for_matching_query(self) -> Select:
        """
        Build selection of nodes with carry-forward on both legs.

        Least-paid nodes first, ties by user id.
        """
        return (
            select(BinaryNode.user_id)
            .where(
                BinaryNode.left_unmatched > 0,
                BinaryNode.right_unmatched > 0,
            )
            .order_by(
                BinaryNode.matched_to_date.asc(),
                BinaryNode.user_id.asc(),
            )
        )

    async def get_eligible_user_ids(self) -> list[int]:
        """
        Get owners of nodes eligible for matching, in processing order.

        Returns:
            User IDs
        """
        result = await self.session.execute(self.eligible_for_matching_query())
        return list(result.scalars().all())

    async def apply_match(
        self,
        node: BinaryNode,
        matched_volume: Decimal,
        payout_amount: Decimal,
        matched_at: datetime,
    ) -> None:
        """
        Deduct matched volume from both legs of a locked node.

        Args:
            node: Node locked by lock_by_user_id
            matched_volume: Volume removed from each leg
            payout_amount: Amount added to matched_to_date
            matched_at: Match timestamp
        """
        node.left_unmatched = node.left_unmatched - matched_volume
        node.right_unmatched = node.right_unmatched - matched_volume
        node.matched_to_date = node.matched_to_date + payout_amount
        node.last_matched_at = matched_at
        await self.session.flush()

    async def find_free_slot(
        self, root_user_id: int, max_nodes: int
    ) -> tuple[BinaryNode, NodePosition] | None:
        """
        Find first free child slot breadth-first, left before right.

        Args:
            root_user_id: Subtree root (usually the sponsor)
            max_nodes: Bound on visited nodes

        Returns:
            (parent node, free side) or None
        """
        queue = [root_user_id]
        visited: set[int] = set()

        while queue and len(visited) < max_nodes:
            level_nodes = await self.get_by_user_ids(queue)
            by_user = {n.user_id: n for n in level_nodes}
            next_queue: list[int] = []

            for user_id in queue:
                if user_id in visited:
                    continue
                visited.add(user_id)
                node = by_user.get(user_id)
                if node is None:
                    continue
                if node.left_child_id is None:
                    return node, NodePosition.LEFT
                if node.right_child_id is None:
                    return node, NodePosition.RIGHT
                next_queue.extend([node.left_child_id, node.right_child_id])

            queue = next_queue

        return None
