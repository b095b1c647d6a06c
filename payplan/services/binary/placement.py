"""
Binary placement.

Creates binary nodes. A member without sponsor becomes a root; otherwise
the node takes the first free slot breadth-first under the sponsor,
left before right, or an explicitly requested slot.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from payplan.models.binary_node import BinaryNode
from payplan.models.enums import NodePosition
from payplan.repositories.binary_node_repository import BinaryNodeRepository
from payplan.utils.exceptions import TreeIntegrityError

# Attempts to find another slot when a concurrent placement took ours
MAX_PLACEMENT_ATTEMPTS = 3


class BinaryPlacementService:
    """Places new members into the binary tree."""

    def __init__(self, session: AsyncSession, max_nodes: int = 10_000) -> None:
        """
        Initialize placement service.

        Args:
            session: Async database session
            max_nodes: Bound on nodes visited while searching a slot
        """
        self.session = session
        self.max_nodes = max_nodes
        self.node_repo = BinaryNodeRepository(session)

    async def place(
        self,
        user_id: int,
        sponsor_id: int | None = None,
        parent_id: int | None = None,
        side: NodePosition | None = None,
    ) -> BinaryNode:
        """
        Create the binary node of a member.

        Args:
            user_id: New member
            sponsor_id: Sponsor (search root for automatic placement)
            parent_id: Explicit parent (requires side)
            side: Explicit side under parent

        Returns:
            Created node (flushed, not committed)

        Raises:
            TreeIntegrityError: Member already placed, slot taken,
                parent or sponsor missing
        """
        if await self.node_repo.get_by_user_id(user_id) is not None:
            raise TreeIntegrityError(f"User {user_id} is already placed")

        if parent_id is not None:
            if side not in (NodePosition.LEFT, NodePosition.RIGHT):
                raise TreeIntegrityError("Explicit placement needs LEFT or RIGHT")
            if parent_id == user_id:
                raise TreeIntegrityError("Node cannot be its own parent")
            parent = await self.node_repo.lock_by_user_id(parent_id)
            if parent is None:
                raise TreeIntegrityError(f"Parent {parent_id} has no node")
            if parent.child_on(side) is not None:
                raise TreeIntegrityError(
                    f"Slot {side.value} under {parent_id} is taken"
                )
            return await self._attach(user_id, parent, side)

        if sponsor_id is None:
            node = await self.node_repo.create(
                user_id=user_id,
                parent_id=None,
                position=NodePosition.ROOT.value,
                level=0,
            )
            logger.info("Root node created", extra={"user_id": user_id})
            return node

        for _attempt in range(MAX_PLACEMENT_ATTEMPTS):
            slot = await self.node_repo.find_free_slot(sponsor_id, self.max_nodes)
            if slot is None:
                raise TreeIntegrityError(
                    f"No free slot under sponsor {sponsor_id}"
                )
            candidate, free_side = slot

            parent = await self.node_repo.lock_by_user_id(candidate.user_id)
            if parent is not None and parent.child_on(free_side) is None:
                return await self._attach(user_id, parent, free_side)

            logger.warning(
                "Placement slot taken concurrently, searching again",
                extra={"parent_user_id": candidate.user_id, "side": free_side.value},
            )

        raise TreeIntegrityError(
            f"Could not place user {user_id} under sponsor {sponsor_id}"
        )

    async def _attach(
        self, user_id: int, parent: BinaryNode, side: NodePosition
    ) -> BinaryNode:
        node = await self.node_repo.create(
            user_id=user_id,
            parent_id=parent.user_id,
            position=side.value,
            level=parent.level + 1,
        )
        if side == NodePosition.LEFT:
            parent.left_child_id = user_id
        else:
            parent.right_child_id = user_id
        await self.session.flush()

        logger.info(
            "Binary node placed",
            extra={
                "user_id": user_id,
                "parent_user_id": parent.user_id,
                "side": side.value,
                "level": node.level,
            },
        )
        return node
