"""
RoofHarvest command line.

Fetches the buildings of a viewport, runs one analysis layer and prints an
ASCII heat map plus a summary. With --building-id it analyzes one rooftop
instead.

Usage:
    python main.py --bounds 23.80 90.40 23.82 90.42 --zoom 15 --mode urban_heat
    python main.py --bounds 23.80 90.40 23.82 90.42 --building-id 123456
"""

import argparse
import logging
import sys
from typing import List

from core.analyzer import AnalysisMode, AreaAnalyzer, BuildingAnalyzer
from core.models import AreaAnalysis, BoundingBox, RainwaterPotential
from core.result import HardFailure
from loaders.gateway import get_gateway

log = logging.getLogger("roofharvest")

HEATMAP_COLUMNS = 40
HEATMAP_ROWS = 20


def render_heatmap(analysis: AreaAnalysis, columns: int = HEATMAP_COLUMNS, rows: int = HEATMAP_ROWS) -> List[str]:
    """Bucket scored points into a character grid, north at the top."""
    bounds = analysis.bounds
    lat_span = (bounds.north - bounds.south) or 1e-9
    lng_span = (bounds.east - bounds.west) or 1e-9
    grid = [[0.0] * columns for _ in range(rows)]

    for point in analysis.points:
        row = int((bounds.north - point.lat) / lat_span * rows)
        col = int((point.lng - bounds.west) / lng_span * columns)
        if 0 <= row < rows and 0 <= col < columns:
            grid[row][col] = max(grid[row][col], point.intensity)

    lines = []
    for row in grid:
        line = ""
        for s in row:
            if s == 0: char = "."
            elif s < 0.33: char = ":"
            elif s < 0.66: char = "%"
            else: char = "#"
            line += char
        lines.append(line)
    return lines


def print_area(analysis: AreaAnalysis) -> None:
    print(f"\n=== {analysis.mode.upper().replace('_', ' ')} ===")
    print("Scale: . (none) : (low) % (medium) # (high)\n")
    for line in render_heatmap(analysis):
        print(f"  {line}")

    print(f"\nPoints: {len(analysis.points)}")
    print(f"Requested: {analysis.requested}  Successful: {analysis.successful}  Failed: {analysis.failed}")
    if analysis.source:
        print(f"Source: {analysis.source}")
    if analysis.note:
        print(f"Note: {analysis.note}")

    for zone in analysis.zones:
        print(f"  [{zone.level}] score {zone.score:.2f}, {zone.cluster.size} buildings, "
              f"{zone.cluster_temperature:.1f}°C - {', '.join(zone.recommended_actions)}")


def print_building(analysis) -> None:
    solar = analysis.solar
    print(f"\n=== BUILDING {analysis.building_id} ({analysis.area:,.0f} m²) ===")
    print(f"Solar: {solar.annual_energy_kwh:,.0f} kWh/year from {solar.estimated_panels} panels, "
          f"powers {solar.homes_powered} homes, offsets {solar.co2_offset_kg:,.0f} kg CO2")

    water = analysis.water
    if isinstance(water, RainwaterPotential):
        label = "" if water.is_real else f" (estimated: {water.note})"
        print(f"Water: {water.annual_water_liters:,.0f} L/year, {water.storage_tank_m3} m³ tank, "
              f"supports {water.households_supported} households{label}")
    else:
        print(f"Water: unavailable ({water.reason})")

    heat = analysis.heat
    print(f"Heat: {heat.risk_level} risk, cooling potential {heat.temperature_reduction}")
    print(f"Data: {analysis.data_source}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="RoofHarvest environmental potential engine")
    parser.add_argument("--bounds", nargs=4, type=float, required=True,
                        metavar=("SOUTH", "WEST", "NORTH", "EAST"),
                        help="Viewport bounding box in decimal degrees")
    parser.add_argument("--zoom", type=int, default=15, help="Map zoom level (default: 15)")
    parser.add_argument("--mode", choices=[m.value for m in AnalysisMode],
                        default=AnalysisMode.URBAN_HEAT.value, help="Analysis layer")
    parser.add_argument("--building-id", help="Analyze a single building from the viewport")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s │ %(name)-20s │ %(levelname)-8s │ %(message)s',
        datefmt='%H:%M:%S',
    )

    try:
        bounds = BoundingBox(*args.bounds)
    except HardFailure as e:
        parser.error(str(e))

    gateway = get_gateway()
    needs_buildings = args.building_id or args.mode != AnalysisMode.AIR_QUALITY.value
    buildings = None
    if needs_buildings:
        fetched = gateway.fetch_buildings(bounds)
        if not fetched.is_ok:
            log.error(f"Could not load buildings: {fetched.reason}")
            return 1
        buildings = fetched.value
        log.info(f"Loaded {len(buildings)} buildings")

    if args.building_id:
        building = next((b for b in buildings if b.id == str(args.building_id)), None)
        if building is None:
            log.error(f"Building {args.building_id} not found in viewport")
            return 1
        result = BuildingAnalyzer(gateway).analyze_building(building)
        if not result.is_ok:
            log.error(result.reason)
            return 1
        print_building(result.value)
    else:
        result = AreaAnalyzer(gateway).analyze_area(bounds, args.mode, buildings, args.zoom)
        if not result.is_ok:
            log.error(result.reason)
            return 1
        print_area(result.value)

    log.debug(f"Cache: {gateway.cache_stats()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
