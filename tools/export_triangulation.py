"""Export the face mesh triangulation to assets/meshdata/triangulation.json.

Builds the table from mediapipe's tessellation edges and prints a short
per-feature summary so regressions in the derived feature sets are easy
to spot.

Usage:
    python tools/export_triangulation.py [--out PATH]
"""

import sys
sys.path.insert(0, "src")

import argparse
import logging
from pathlib import Path

from facerender.constants import FACE_POINT_COUNT, MESHDATA_DIR
from facerender.landmarks.annotation_index import AnnotationIndex
from facerender.landmarks.triangulation import (
    TRIANGULATION_FILE,
    TriangulationTable,
    mediapipe_tessellation_edges,
)


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--out", type=Path, default=MESHDATA_DIR / TRIANGULATION_FILE)
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    table = TriangulationTable.from_edges(mediapipe_tessellation_edges(), FACE_POINT_COUNT)
    args.out.parent.mkdir(parents=True, exist_ok=True)
    table.to_json(args.out)
    print(f"Wrote {len(table)} triangles to {args.out}")

    index = AnnotationIndex.build(table)
    for key in index.mesh_feature_keys:
        print(f"  {key:16s} {len(index.feature_points(key)):4d} points "
              f"{len(index.feature_triangles(key)):4d} triangles")


if __name__ == "__main__":
    main()
