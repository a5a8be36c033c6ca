"""
Grid Sampler for viewport analysis.

Partitions a bounding box into a uniform lat/lng grid whose cell size is
picked from the map zoom, projects buildings onto it and scores each cell
with one climate query.
"""

import math
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from core.geometry import GeoPoint, cell_ground_area_m2
from core.models import BoundingBox, Building, GridCell
from core.scoring import urban_heat_intensity
from core.settings import EngineSettings, get_settings

log = logging.getLogger(__name__)


@dataclass
class GridPass:
    """One sampling pass: all cells, plus the ones that could be scored."""
    cells: List[GridCell] = field(default_factory=list)
    scored: List[GridCell] = field(default_factory=list)
    failed: int = 0
    notes: List[str] = field(default_factory=list)

    @property
    def requested(self) -> int:
        return len(self.cells)


class GridSampler:
    """
    Manages one grid of GridCell over a viewport.

    The gateway only needs ``fetch_temperature(lat, lng) -> ClimateSample``;
    it is injected so this module never imports the loaders.
    """

    def __init__(self, gateway=None, settings: Optional[EngineSettings] = None):
        self.gateway = gateway
        self.settings = settings or get_settings()

    def cell_size_for_zoom(self, zoom: int) -> float:
        """Finer cells at high zoom, coarser at low zoom."""
        for min_zoom, size_deg in self.settings.zoom_tiers:
            if zoom >= min_zoom:
                return size_deg
        return self.settings.zoom_tiers[-1][1]

    def _dimensions(self, bounds: BoundingBox, size_deg: float):
        # tolerance keeps 23.81 - 23.80 from spilling into an extra row
        rows = max(1, math.ceil((bounds.north - bounds.south) / size_deg - 1e-9))
        cols = max(1, math.ceil((bounds.east - bounds.west) / size_deg - 1e-9))
        return rows, cols

    def build_cells(self, bounds: BoundingBox, size_deg: float) -> List[List[GridCell]]:
        """
        Enumerate the cells covering ``bounds``, south-west first.

        The cell size is doubled until the grid fits ``max_grid_cells``.
        """
        rows, cols = self._dimensions(bounds, size_deg)
        while rows * cols > self.settings.max_grid_cells:
            size_deg *= 2
            rows, cols = self._dimensions(bounds, size_deg)
            log.debug(f"Grid too large, coarsening to {size_deg}°")

        grid = []
        for row in range(rows):
            grid.append([
                GridCell(
                    lat=bounds.south + row * size_deg,
                    lng=bounds.west + col * size_deg,
                    size_deg=size_deg,
                )
                for col in range(cols)
            ])
        return grid

    @staticmethod
    def assign_buildings(grid: List[List[GridCell]], buildings: Sequence[Building]) -> int:
        """
        Project each building onto the one cell holding its centroid.

        Returns:
            Number of buildings that landed inside the grid
        """
        if not grid or not grid[0]:
            return 0
        placed = 0
        for building in buildings:
            cell = GridSampler._locate(grid, building.centroid)
            if cell is not None:
                cell.buildings.append(building)
                placed += 1
        return placed

    @staticmethod
    def _locate(grid: List[List[GridCell]], point: GeoPoint) -> Optional[GridCell]:
        """Cell whose ``contains`` accepts ``point``, or None outside the grid."""
        origin = grid[0][0]
        rows, cols = len(grid), len(grid[0])
        row = math.floor((point.lat - origin.lat) / origin.size_deg)
        col = math.floor((point.lng - origin.lng) / origin.size_deg)
        # floor can land one cell off when a point sits on a float boundary
        for r in (row, row - 1, row + 1):
            for c in (col, col - 1, col + 1):
                if 0 <= r < rows and 0 <= c < cols and grid[r][c].contains(point):
                    return grid[r][c]
        return None

    @staticmethod
    def compute_density(cell: GridCell) -> float:
        """Share of the cell ground area covered by building footprints."""
        ground = cell_ground_area_m2(cell.center.lat, cell.size_deg)
        if ground <= 0:
            return 0.0
        built = sum(b.area for b in cell.buildings)
        return min(built / ground, 1.0)

    def project(self, bounds: BoundingBox, buildings: Sequence[Building], zoom: int) -> List[GridCell]:
        """Build the grid, assign buildings and compute densities; no upstream calls."""
        grid = self.build_cells(bounds, self.cell_size_for_zoom(zoom))
        placed = self.assign_buildings(grid, buildings)
        cells = [cell for row in grid for cell in row]
        for cell in cells:
            cell.building_density = self.compute_density(cell)
        log.info(f"Projected {placed}/{len(buildings)} buildings onto {len(cells)} cells")
        return cells

    def sample(self, bounds: BoundingBox, buildings: Sequence[Building], zoom: int) -> GridPass:
        """
        Score every cell with urban-heat intensity.

        Climate queries run in parallel; the gateway throttle is the only
        serialization. Cells whose query soft-fails are left out of
        ``scored``.
        """
        if self.gateway is None:
            raise ValueError("GridSampler.sample requires a gateway")

        result = GridPass(cells=self.project(bounds, buildings, zoom))

        def fetch(cell: GridCell):
            # the last row/column may overhang the viewport (and ±180/±90)
            point = bounds.clamp(cell.center)
            return self.gateway.fetch_temperature(point.lat, point.lng)

        with ThreadPoolExecutor(max_workers=self.settings.max_workers) as executor:
            futures = {executor.submit(fetch, cell): cell for cell in result.cells}
            for future in as_completed(futures):
                cell = futures[future]
                climate = future.result()
                cell.climate = climate
                if not climate.is_real or climate.avg_temperature is None:
                    result.failed += 1
                    if climate.source_note and climate.source_note not in result.notes:
                        result.notes.append(climate.source_note)
                    continue
                # density doubles as the green-deficit proxy at cell level
                cell.scores = urban_heat_intensity(
                    climate.avg_temperature,
                    cell.building_density,
                    cell.building_density,
                )
                result.scored.append(cell)

        # as_completed order is arbitrary; restore grid order
        order = {id(cell): i for i, cell in enumerate(result.cells)}
        result.scored.sort(key=lambda c: order[id(c)])
        log.info(f"Grid sampled: {len(result.scored)}/{result.requested} cells scored")
        return result
