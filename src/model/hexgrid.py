"""Quick card: axial hex coordinates, ids, neighbours, distance and spirals."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

HEX_DIRECTIONS = ((1, 0), (1, -1), (0, -1), (-1, 0), (-1, 1), (0, 1))


@dataclass(frozen=True)
class Hex:
    q: int
    r: int

    @property
    def s(self) -> int:
        return -self.q - self.r

    @property
    def id(self) -> str:
        return hex_id(self.q, self.r)

    def __str__(self) -> str:
        return self.id


def hex_id(q: int, r: int) -> str:
    return f"{q},{r}"


def parse_hex_id(value: str) -> Hex:
    q, r = value.split(",")
    return Hex(int(q), int(r))


def neighbors(center: Hex) -> List[Hex]:
    return [Hex(center.q + dq, center.r + dr) for dq, dr in HEX_DIRECTIONS]


def distance(a: Hex, b: Hex) -> int:
    dq = a.q - b.q
    dr = a.r - b.r
    return (abs(dq) + abs(dq + dr) + abs(dr)) // 2


def spiral(center: Hex, radius: int) -> List[Hex]:
    """Return ``center`` followed by every ring out to ``radius`` (inclusive)."""
    results = [center]
    for k in range(1, radius + 1):
        # Ring walk: start k steps in direction 4 and turn through all six directions
        q = center.q + HEX_DIRECTIONS[4][0] * k
        r = center.r + HEX_DIRECTIONS[4][1] * k
        for dq, dr in HEX_DIRECTIONS:
            for _ in range(k):
                results.append(Hex(q, r))
                q += dq
                r += dr
    return results


def offset_to_axial(col: int, row: int) -> Hex:
    """Odd-r offset grid position to axial coordinates."""
    q = col - (row - (row & 1)) // 2
    return Hex(q, row)
