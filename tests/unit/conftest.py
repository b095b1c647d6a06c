"""
Shared fixtures for unit tests.

Builders for detached model instances used by fake repositories.
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from payplan.models.binary_node import BinaryNode
from payplan.models.enums import NodePosition


def make_node(
    user_id: int,
    parent_id: int | None = None,
    position: NodePosition = NodePosition.ROOT,
    left_child_id: int | None = None,
    right_child_id: int | None = None,
    left_unmatched: str = "0",
    right_unmatched: str = "0",
    matched_to_date: str = "0",
    level: int = 0,
) -> BinaryNode:
    """Build a detached node with every column set."""
    return BinaryNode(
        id=user_id,
        user_id=user_id,
        parent_id=parent_id,
        position=position.value,
        left_child_id=left_child_id,
        right_child_id=right_child_id,
        level=level,
        left_volume=Decimal(left_unmatched),
        right_volume=Decimal(right_unmatched),
        left_unmatched=Decimal(left_unmatched),
        right_unmatched=Decimal(right_unmatched),
        matched_to_date=Decimal(matched_to_date),
        last_matched_at=None,
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
    )


@pytest.fixture
def node_factory():
    """Expose make_node as a fixture."""
    return make_node
