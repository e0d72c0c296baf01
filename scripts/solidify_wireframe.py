#!/usr/bin/env python3
"""
Solidify a strut wireframe into a watertight triangle mesh.

Usage:
    python scripts/solidify_wireframe.py --input lattice.json --output lattice.stl
    python scripts/solidify_wireframe.py --input lattice.json --output lattice.obj --radius 0.5 --sides 8 --report
"""
import sys
import argparse
import logging
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from strutmesh.contracts import SolidifyConfig
from strutmesh.pipeline import solidify, summarize
from strutmesh.report import format_report
from strutmesh.wireframe_io import export_mesh, load_wireframe_json


def main():
    parser = argparse.ArgumentParser(
        description="Solidify a strut wireframe into a watertight triangle mesh.",
    )
    parser.add_argument(
        "--input", required=True,
        help="Path to wireframe JSON ({\"struts\": [...], \"radius\": ...})",
    )
    parser.add_argument(
        "--output", default=None,
        help="Output mesh path, format from suffix (default: <input_stem>.stl)",
    )
    parser.add_argument(
        "--radius", type=float, default=None,
        help="Strut radius; overrides the radius in the input file",
    )
    parser.add_argument(
        "--sides", type=int, default=6,
        help="Polygon sides per strut cross-section (default: 6)",
    )
    parser.add_argument(
        "--tolerance", type=float, default=1e-3,
        help="Absolute coincidence tolerance (default: 1e-3)",
    )
    parser.add_argument(
        "--no-sharp-fix", action="store_true",
        help="Do not add extra plates at sharp nodes",
    )
    parser.add_argument(
        "--report", action="store_true",
        help="Print the mesh validity report",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    input_path = Path(args.input).resolve()
    if not input_path.is_file():
        parser.error(f"Input file not found: {input_path}")
    output_path = Path(args.output).resolve() if args.output else input_path.with_suffix(".stl")

    try:
        config = SolidifyConfig(
            tolerance=args.tolerance,
            sides=args.sides,
            fix_sharp_nodes=not args.no_sharp_fix,
        )
        wireframe = load_wireframe_json(input_path)
    except ValueError as exc:
        parser.error(str(exc))

    radius = args.radius if args.radius is not None else wireframe.radius
    if radius is None and wireframe.strut_radii is None:
        parser.error("No radius given: pass --radius or set 'radius' in the input file")

    print(f"Solidifying {len(wireframe.curves)} struts from {input_path} ...")
    try:
        result = solidify(
            wireframe.curves, radius, config=config, strut_radii=wireframe.strut_radii,
        )
    except ValueError as exc:
        parser.error(str(exc))

    print(summarize(result))
    if args.report and result.report is not None:
        print(format_report(result.report))

    if result.status == "failed":
        print("Nothing to export.")
        return 1

    export_mesh(result.mesh, output_path)
    print(f"Mesh saved to {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
