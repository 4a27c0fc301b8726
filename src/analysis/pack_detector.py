"""Pack detection over a snapshot of vehicles on a circular lane.

A pack is a maximal run of vehicles, in position order, whose speeds stay
close to the speed of the vehicle that opened the pack and whose following
gaps stay short. One algorithm serves both the detailed pack view (lane
aware, with member ids) and the plain pack count (lane blind).
"""

from dataclasses import dataclass
from typing import Dict, Hashable, List, Sequence, Tuple

import numpy as np

from constants import DEFAULT_GAP_THRESHOLD, DEFAULT_SPEED_DIFF_THRESHOLD


@dataclass(frozen=True)
class VehicleSnapshot:
    """State of one vehicle at a single simulator tick.

    Attributes:
        id: Vehicle identifier (unique within a snapshot set)
        position: Distance along the circular lane, in [0, lane_length)
        speed: Current speed
        lane: Lane index
    """

    id: Hashable
    position: float
    speed: float
    lane: int = 0


@dataclass(frozen=True)
class Pack:
    """A group of vehicles travelling together.

    Attributes:
        pack_id: 0-based id assigned in scan order
        representative_speed: Speed of the vehicle that opened the pack
        member_ids: Member vehicle ids in scan order
    """

    pack_id: int
    representative_speed: float
    member_ids: Tuple[Hashable, ...]

    @property
    def member_count(self) -> int:
        """Return the number of vehicles in this pack."""
        return len(self.member_ids)


@dataclass(frozen=True)
class PackDetectionResult:
    """Packs found in one snapshot set plus the vehicle -> pack lookup."""

    packs: Tuple[Pack, ...]
    assignment: Dict[Hashable, int]

    @property
    def pack_count(self) -> int:
        return len(self.packs)


def circular_gap(position: float, previous_position: float, lane_length: float) -> float:
    """Forward distance from previous_position to position on a circular lane.

    Args:
        position: Position of the following vehicle
        previous_position: Position of the vehicle ahead in scan order
        lane_length: Circumference of the lane; non-positive disables wrapping

    Returns:
        Gap in [0, lane_length)
    """
    delta = position - previous_position
    if lane_length <= 0:
        return abs(delta)
    return ((delta % lane_length) + lane_length) % lane_length


def _scan_order(snapshots: Sequence[VehicleSnapshot]) -> List[VehicleSnapshot]:
    """Sort by position, breaking ties by id."""
    try:
        return sorted(snapshots, key=lambda s: (s.position, s.id))
    except TypeError:
        # Ids of mixed types have no natural order
        return sorted(
            snapshots,
            key=lambda s: (s.position, type(s.id).__name__, str(s.id)),
        )


def detect_packs(
    snapshots: Sequence[VehicleSnapshot],
    gap_threshold: float = DEFAULT_GAP_THRESHOLD,
    speed_diff_threshold: float = DEFAULT_SPEED_DIFF_THRESHOLD,
    lane_length: float = 0.0,
    lane_aware: bool = True,
) -> PackDetectionResult:
    """Group a snapshot of vehicles into packs.

    Vehicles are scanned in ascending position (ties broken by id). A new
    pack starts when the speed differs from the pack's opening speed by more
    than speed_diff_threshold, when the circular gap to the previous vehicle
    exceeds gap_threshold, or, with lane_aware set, when the lane differs
    from the previous vehicle's lane.

    Never raises; an empty snapshot set yields no packs.

    Args:
        snapshots: Vehicle states captured at one tick
        gap_threshold: Largest following gap that keeps a vehicle in the pack
        speed_diff_threshold: Largest speed difference from the opening speed
        lane_length: Lane circumference used for wraparound
        lane_aware: Split packs on lane changes between neighbours

    Returns:
        PackDetectionResult whose packs partition the input
    """
    if not snapshots:
        return PackDetectionResult(packs=(), assignment={})

    ordered = _scan_order(snapshots)

    packs: List[Pack] = []
    assignment: Dict[Hashable, int] = {}

    pack_id = 0
    current_members: List[Hashable] = [ordered[0].id]
    current_pack_speed = ordered[0].speed

    def close_pack() -> None:
        packs.append(Pack(
            pack_id=pack_id,
            representative_speed=current_pack_speed,
            member_ids=tuple(current_members),
        ))
        for member_id in current_members:
            assignment[member_id] = pack_id

    for previous, vehicle in zip(ordered, ordered[1:]):
        gap = circular_gap(vehicle.position, previous.position, lane_length)

        new_by_speed = abs(vehicle.speed - current_pack_speed) > speed_diff_threshold
        new_by_gap = gap > gap_threshold
        new_by_lane = lane_aware and vehicle.lane != previous.lane

        if new_by_speed or new_by_gap or new_by_lane:
            close_pack()
            pack_id += 1
            current_members = [vehicle.id]
            current_pack_speed = vehicle.speed
        else:
            current_members.append(vehicle.id)

    close_pack()

    return PackDetectionResult(packs=tuple(packs), assignment=assignment)


def count_packs(
    snapshots: Sequence[VehicleSnapshot],
    gap_threshold: float = DEFAULT_GAP_THRESHOLD,
    speed_diff_threshold: float = DEFAULT_SPEED_DIFF_THRESHOLD,
    lane_length: float = 0.0,
) -> int:
    """Lane-blind pack count, as recorded in the pack formation history."""
    return detect_packs(
        snapshots,
        gap_threshold=gap_threshold,
        speed_diff_threshold=speed_diff_threshold,
        lane_length=lane_length,
        lane_aware=False,
    ).pack_count


def multi_vehicle_packs(result: PackDetectionResult) -> List[Pack]:
    """Return only the packs holding more than one vehicle."""
    return [pack for pack in result.packs if pack.member_count > 1]


def pack_lengths(
    snapshots: Sequence[VehicleSnapshot],
    result: PackDetectionResult,
    lane_length: float,
) -> List[float]:
    """Compute the physical length of every pack.

    The length of a pack is the circular distance from its first member to
    its last member in scan order; a single-vehicle pack has length 0.

    Args:
        snapshots: The snapshot set the packs were detected on
        result: Output of detect_packs for those snapshots
        lane_length: Lane circumference used for wraparound

    Returns:
        One length per pack, in pack id order
    """
    positions = {snapshot.id: snapshot.position for snapshot in snapshots}
    lengths = []
    for pack in result.packs:
        first = positions[pack.member_ids[0]]
        last = positions[pack.member_ids[-1]]
        lengths.append(circular_gap(last, first, lane_length))
    return lengths


def average_pack_length(
    snapshots: Sequence[VehicleSnapshot],
    result: PackDetectionResult,
    lane_length: float,
) -> float:
    """Mean pack length, or 0.0 when there are no packs."""
    lengths = pack_lengths(snapshots, result, lane_length)
    if not lengths:
        return 0.0
    return float(np.mean(lengths))
