"""
Binary plan services.

- volume_accumulator: Propagates investment volume to ancestors
- matching_engine: Periodic matching of carry-forward volume
- placement: Places new members into the tree
"""

from payplan.services.binary.matching_engine import (
    BinaryMatchingEngine,
    MatchingReport,
    MatchOutcome,
    calculate_payout,
)
from payplan.services.binary.placement import BinaryPlacementService
from payplan.services.binary.volume_accumulator import (
    AccumulationResult,
    BinaryVolumeAccumulator,
    side_under_parent,
)


__all__ = [
    "AccumulationResult",
    "BinaryMatchingEngine",
    "BinaryPlacementService",
    "BinaryVolumeAccumulator",
    "MatchOutcome",
    "MatchingReport",
    "calculate_payout",
    "side_under_parent",
]
