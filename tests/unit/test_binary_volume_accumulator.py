"""
Unit tests for the binary volume accumulator.

Tests cover:
- Leg selection from parent pointers
- Propagation to every ancestor
- Loop and depth protection
- Failure isolation
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from payplan.models.enums import NodePosition
from payplan.services.binary.volume_accumulator import (
    BinaryVolumeAccumulator,
    side_under_parent,
)


@pytest.fixture
def tree(node_factory):
    """
    Small tree:

            1
          /   \\
         2     3
        /
       4
    """
    return {
        1: node_factory(1, left_child_id=2, right_child_id=3),
        2: node_factory(2, parent_id=1, position=NodePosition.LEFT, left_child_id=4),
        3: node_factory(3, parent_id=1, position=NodePosition.RIGHT),
        4: node_factory(4, parent_id=2, position=NodePosition.LEFT),
    }


@pytest.fixture
def make_accumulator(mock_session):
    """Accumulator reading nodes from a dict and recording add_volume calls."""

    def _make(nodes, max_depth=10_000):
        accumulator = BinaryVolumeAccumulator(mock_session, max_depth=max_depth)

        async def _get(user_id):
            return nodes.get(user_id)

        accumulator.node_repo.get_by_user_id = AsyncMock(side_effect=_get)
        accumulator.node_repo.add_volume = AsyncMock(return_value=1)
        return accumulator

    return _make


def volume_calls(accumulator):
    return [
        (c.args[0], c.args[1]) for c in accumulator.node_repo.add_volume.await_args_list
    ]


class TestSideUnderParent:
    """Test leg detection."""

    def test_parent_pointer_wins(self, node_factory):
        """Parent's child pointer decides even if position disagrees."""
        parent = node_factory(1, right_child_id=2)
        child = node_factory(2, parent_id=1, position=NodePosition.LEFT)

        assert side_under_parent(parent, child) == NodePosition.RIGHT

    def test_position_fallback(self, node_factory):
        """Child's own position is used when the parent has no pointer."""
        parent = node_factory(1)
        child = node_factory(2, parent_id=1, position=NodePosition.RIGHT)

        assert side_under_parent(parent, child) == NodePosition.RIGHT

    def test_undeterminable(self, node_factory):
        """No pointer and a root position."""
        parent = node_factory(1)
        child = node_factory(2, parent_id=1)

        assert side_under_parent(parent, child) is None


class TestAccumulate:
    """Test propagation."""

    @pytest.mark.asyncio
    async def test_volume_reaches_every_ancestor(self, make_accumulator, tree):
        """Investment at 4 credits left leg of 2 and left leg of 1."""
        accumulator = make_accumulator(tree)

        result = await accumulator.accumulate(4, Decimal("500"))

        assert volume_calls(accumulator) == [
            (2, NodePosition.LEFT),
            (1, NodePosition.LEFT),
        ]
        assert result.ancestors_updated == 2
        assert result.failures == 0

    @pytest.mark.asyncio
    async def test_right_leg(self, make_accumulator, tree):
        """Investment at 3 credits right leg of the root."""
        accumulator = make_accumulator(tree)

        await accumulator.accumulate(3, Decimal("100"))

        assert volume_calls(accumulator) == [(1, NodePosition.RIGHT)]
        assert accumulator.node_repo.add_volume.await_args.args[2] == Decimal("100")

    @pytest.mark.asyncio
    async def test_root_investor_adds_nothing(self, make_accumulator, tree):
        """Own node never receives volume."""
        accumulator = make_accumulator(tree)

        result = await accumulator.accumulate(1, Decimal("100"))

        assert result.ancestors_updated == 0
        accumulator.node_repo.add_volume.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_investor_without_node(self, make_accumulator, tree):
        """Unplaced investor is logged and ignored."""
        accumulator = make_accumulator(tree)

        result = await accumulator.accumulate(99, Decimal("100"))

        assert result.ancestors_updated == 0

    @pytest.mark.asyncio
    async def test_loop_is_detected(self, make_accumulator, node_factory):
        """Cycle in parent pointers stops the walk."""
        nodes = {
            1: node_factory(1, parent_id=2, position=NodePosition.LEFT, left_child_id=2),
            2: node_factory(2, parent_id=1, position=NodePosition.LEFT, left_child_id=1),
        }
        accumulator = make_accumulator(nodes)

        result = await accumulator.accumulate(1, Decimal("10"))

        assert result.loop_detected
        assert result.ancestors_updated == 1

    @pytest.mark.asyncio
    async def test_depth_bound(self, make_accumulator, tree):
        """Walk stops at the configured depth."""
        accumulator = make_accumulator(tree, max_depth=1)

        result = await accumulator.accumulate(4, Decimal("10"))

        assert result.depth_limit_reached
        assert volume_calls(accumulator) == [(2, NodePosition.LEFT)]

    @pytest.mark.asyncio
    async def test_failure_on_one_ancestor_is_isolated(self, make_accumulator, tree):
        """Update error on 2 still lets 1 receive volume."""
        accumulator = make_accumulator(tree)

        async def _add(user_id, side, amount):
            if user_id == 2:
                raise RuntimeError("update failed")
            return 1

        accumulator.node_repo.add_volume = AsyncMock(side_effect=_add)

        result = await accumulator.accumulate(4, Decimal("10"))

        assert result.failures == 1
        assert result.ancestors_updated == 1

    @pytest.mark.asyncio
    async def test_unknown_leg_counts_as_failure(self, make_accumulator, node_factory):
        """Child with no pointer and root position is skipped."""
        nodes = {
            1: node_factory(1),
            2: node_factory(2, parent_id=1),
        }
        accumulator = make_accumulator(nodes)

        result = await accumulator.accumulate(2, Decimal("10"))

        assert result.failures == 1
        accumulator.node_repo.add_volume.assert_not_awaited()
