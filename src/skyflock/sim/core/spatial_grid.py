from __future__ import annotations

import math
from typing import TYPE_CHECKING, Dict, Iterable, List, Tuple

from pygame.math import Vector3

if TYPE_CHECKING:
    from .agent import Boid

CellKey = Tuple[int, int, int]


class SpatialGrid:
    """Uniform hash grid over the bounds box, rebuilt wholesale every tick.

    Cells are indexed from the negative corner of the box, so a position inside the
    bounds always maps to non-negative coordinates. Positions outside still hash to a
    cell; the grid does not enforce bounds.
    """

    def __init__(self, cell_size: float, half_extents: Tuple[float, float, float]) -> None:
        if cell_size <= 0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        self._cell_size = float(cell_size)
        self._offset_x, self._offset_y, self._offset_z = (float(v) for v in half_extents)
        self._cells: Dict[CellKey, List["Boid"]] = {}
        self._active_keys: List[CellKey] = []

    @property
    def cell_size(self) -> float:
        return self._cell_size

    @property
    def occupied_cells(self) -> int:
        return len(self._active_keys)

    def clear(self) -> None:
        for key in self._active_keys:
            bucket = self._cells.get(key)
            if bucket:
                bucket.clear()
        self._active_keys.clear()

    def insert(self, agent: "Boid") -> None:
        key = self.cell_key(agent.position)
        bucket = self._cells.get(key)
        if bucket is None:
            bucket = []
            self._cells[key] = bucket
            self._active_keys.append(key)
        elif not bucket:
            # Bucket exists but was cleared at the start of this tick; mark it active again.
            self._active_keys.append(key)
        bucket.append(agent)

    def rebuild(self, agents: Iterable["Boid"]) -> None:
        self.clear()
        for agent in agents:
            self.insert(agent)

    def query(self, position: Vector3, radius: float) -> List["Boid"]:
        """Return every agent in the cells overlapping the box `position ± radius`.

        This is a broad phase: the result can contain agents farther than `radius`
        (box corners, whole cells), and callers apply the exact distance test.
        A fresh list is returned so concurrent readers never share a buffer.
        """

        size = self._cell_size
        min_x = math.floor((position.x - radius + self._offset_x) / size)
        max_x = math.floor((position.x + radius + self._offset_x) / size)
        min_y = math.floor((position.y - radius + self._offset_y) / size)
        max_y = math.floor((position.y + radius + self._offset_y) / size)
        min_z = math.floor((position.z - radius + self._offset_z) / size)
        max_z = math.floor((position.z + radius + self._offset_z) / size)

        found: List["Boid"] = []
        cells = self._cells
        extend = found.extend
        for iz in range(min_z, max_z + 1):
            for iy in range(min_y, max_y + 1):
                for ix in range(min_x, max_x + 1):
                    bucket = cells.get((ix, iy, iz))
                    if bucket:
                        extend(bucket)
        return found

    def cell_key(self, position: Vector3) -> CellKey:
        size = self._cell_size
        return (
            math.floor((position.x + self._offset_x) / size),
            math.floor((position.y + self._offset_y) / size),
            math.floor((position.z + self._offset_z) / size),
        )
