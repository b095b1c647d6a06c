"""
Binary volume accumulator.

Adds an investment to the leg volume of every binary ancestor of the
investor, all the way to the root. No eligibility gating applies.
"""

from dataclasses import dataclass
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from payplan.models.binary_node import BinaryNode
from payplan.models.enums import NodePosition
from payplan.repositories.binary_node_repository import BinaryNodeRepository


@dataclass
class AccumulationResult:
    """Result of propagating one investment up the tree."""

    ancestors_updated: int = 0
    failures: int = 0
    loop_detected: bool = False
    depth_limit_reached: bool = False


def side_under_parent(parent: BinaryNode, child: BinaryNode) -> NodePosition | None:
    """
    Determine which leg of parent the child sits on.

    Child pointers of the parent win. The child's own position is
    used only when the parent does not point at it.

    Args:
        parent: Parent node
        child: Child node

    Returns:
        LEFT, RIGHT or None if undeterminable
    """
    if parent.left_child_id == child.user_id:
        return NodePosition.LEFT
    if parent.right_child_id == child.user_id:
        return NodePosition.RIGHT
    if child.position in (NodePosition.LEFT.value, NodePosition.RIGHT.value):
        return NodePosition(child.position)
    return None


class BinaryVolumeAccumulator:
    """Propagates investment volume to binary ancestors."""

    def __init__(self, session: AsyncSession, max_depth: int = 10_000) -> None:
        """
        Initialize accumulator.

        Args:
            session: Async database session
            max_depth: Bound on ancestors walked
        """
        self.session = session
        self.max_depth = max_depth
        self.node_repo = BinaryNodeRepository(session)

    async def accumulate(
        self, investor_id: int, amount: Decimal
    ) -> AccumulationResult:
        """
        Add amount to the correct leg of every ancestor.

        Each ancestor is updated with an atomic increment inside its
        own savepoint. The caller commits.

        Args:
            investor_id: Investor user ID
            amount: Investment amount

        Returns:
            AccumulationResult
        """
        result = AccumulationResult()

        child = await self.node_repo.get_by_user_id(investor_id)
        if child is None:
            logger.warning(
                "Investor has no binary node, volume not accumulated",
                extra={"investor_id": investor_id},
            )
            return result

        visited = {child.user_id}
        steps = 0

        while child.parent_id is not None:
            if steps >= self.max_depth:
                result.depth_limit_reached = True
                logger.error(
                    "Binary ancestor walk hit depth bound",
                    extra={"investor_id": investor_id, "depth": steps},
                )
                break

            if child.parent_id in visited:
                result.loop_detected = True
                logger.error(
                    "Binary placement loop detected",
                    extra={
                        "investor_id": investor_id,
                        "repeated_user_id": child.parent_id,
                    },
                )
                break

            parent = await self.node_repo.get_by_user_id(child.parent_id)
            if parent is None:
                logger.error(
                    "Binary parent node missing",
                    extra={
                        "child_user_id": child.user_id,
                        "parent_id": child.parent_id,
                    },
                )
                break

            visited.add(parent.user_id)
            steps += 1

            side = side_under_parent(parent, child)
            if side is None:
                result.failures += 1
                logger.error(
                    "Cannot determine leg for child",
                    extra={
                        "parent_user_id": parent.user_id,
                        "child_user_id": child.user_id,
                    },
                )
            else:
                try:
                    async with self.session.begin_nested():
                        await self.node_repo.add_volume(
                            parent.user_id, side, amount
                        )
                    result.ancestors_updated += 1
                except Exception as e:
                    result.failures += 1
                    logger.exception(
                        f"Failed to add volume to user {parent.user_id}: {e}"
                    )

            child = parent

        logger.info(
            "Binary volume accumulated",
            extra={
                "investor_id": investor_id,
                "amount": str(amount),
                "ancestors_updated": result.ancestors_updated,
                "failures": result.failures,
            },
        )
        return result
