"""AI Capacity Planner: finds the best contiguous rack block for an AI deployment.

Invariants:
    - PURE: reads a SceneModel and a phase, returns a suggestion or None
    - Only windows whose average power headroom >= MIN_AVG_HEADROOM_KW are candidates
    - score = total_free_u + POWER_WEIGHT * total_power_headroom_kw
    - Search order is fixed: rooms by id, then block size ascending, then start index
      ascending; racks within a room sorted by (name, id). Ties keep the first found.

Design Decisions:
    - Power weighted 5x over space: power is the scarcer resource for GPU racks
    - Per-rack free U and headroom clamp at zero so an overloaded rack cannot cancel
      out a neighbour's spare capacity
    - Exhaustive window scan: rooms hold tens of racks, 4 block sizes, so the search is
      a few hundred windows at most
"""

from dataclasses import dataclass

from dctwin.core.domain_types import Phase
from dctwin.core.inventory_snapshot import RackSnapshot, SceneModel, occupied_u

MIN_BLOCK_SIZE = 3
MAX_BLOCK_SIZE = 6
MIN_AVG_HEADROOM_KW = 2.0
POWER_WEIGHT = 5


@dataclass(frozen=True)
class CapacitySuggestion:
    rack_ids: tuple[str, ...]
    room_id: str
    total_free_u: int
    total_power_headroom_kw: float
    score: float
    summary: str


def rack_free_u(rack: RackSnapshot, model: SceneModel, phase: Phase) -> int:
    """Unoccupied U in `rack` under `phase`, never negative."""
    return max(0, rack.u_height - occupied_u(list(model.devices), rack.id, phase))


def racks_by_room(racks: tuple[RackSnapshot, ...] | list[RackSnapshot]) -> list[tuple[str, list[RackSnapshot]]]:
    """Racks grouped per room, rooms by id, racks by (name, id)."""
    grouped: dict[str, list[RackSnapshot]] = {}
    for rack in racks:
        grouped.setdefault(rack.room_id, []).append(rack)
    return [
        (room_id, sorted(grouped[room_id], key=lambda r: (r.name, r.id)))
        for room_id in sorted(grouped)
    ]


def find_ai_ready_capacity(model: SceneModel, phase: Phase) -> CapacitySuggestion | None:
    """Best-scoring contiguous block of 3..6 racks, or None if no block clears the power gate."""
    phase = Phase(phase)
    free_u = {r.id: rack_free_u(r, model, phase) for r in model.racks}

    best: CapacitySuggestion | None = None
    for room_id, room_racks in racks_by_room(model.racks):
        largest = min(MAX_BLOCK_SIZE, len(room_racks))
        for block_size in range(MIN_BLOCK_SIZE, largest + 1):
            for start in range(len(room_racks) - block_size + 1):
                block = room_racks[start:start + block_size]
                total_free_u = sum(free_u[r.id] for r in block)
                total_headroom = sum(r.power_headroom_kw for r in block)

                if total_headroom / block_size < MIN_AVG_HEADROOM_KW:
                    continue

                score = total_free_u + total_headroom * POWER_WEIGHT
                if best is None or score > best.score:
                    best = CapacitySuggestion(
                        rack_ids=tuple(r.id for r in block),
                        room_id=room_id,
                        total_free_u=total_free_u,
                        total_power_headroom_kw=total_headroom,
                        score=score,
                        summary=(
                            f"{block_size} racks can host {total_free_u}U of AI servers "
                            f"with {total_headroom:.1f}kW power headroom available."
                        ),
                    )
    return best
