#!/usr/bin/env python3
"""
Generate a dummy point dataset for load testing the grid index.

Writes N markdown files with YAML front matter under the content root,
laid out as {continent}/{country}/{region}/{slug}-{short_id}.md.
The content root is cleared first.

Usage:
    python scripts/generate_dummy_points.py --count 50000 --seed 7
"""

import argparse
import os
import random
import re
import shutil
import sys
import uuid
from pathlib import Path
from typing import Dict, List, Tuple

import yaml

# Add the project root to the path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common.config import default_config_path, load_settings
from common.logging_setup import get_logger, setup_logging

log = get_logger("generate_dummy_points")

# Regions with weights (higher weight = more likely to be selected)
REGIONS: List[Dict] = [
    {"name": "british-columbia", "weight": 25, "lat_range": (48.0, 60.0), "lon_range": (-130.0, -115.0)},
    {"name": "ontario", "weight": 25, "lat_range": (41.0, 56.0), "lon_range": (-95.0, -75.0)},
    {"name": "quebec", "weight": 20, "lat_range": (45.0, 60.0), "lon_range": (-80.0, -60.0)},
    {"name": "alberta", "weight": 20, "lat_range": (49.0, 60.0), "lon_range": (-120.0, -110.0)},
    {"name": "nova-scotia", "weight": 10, "lat_range": (43.0, 47.0), "lon_range": (-66.0, -60.0)},
]

AMENITIES = [
    "water", "fire-pit", "toilet", "picnic-table", "trash", "cell-service",
    "ATV-access", "RV-suitable", "tent-only", "dog-friendly", "fishing", "hiking",
]

PLACEHOLDER_IMAGE = "https://res.cloudinary.com/demo/image/upload/v1/sample.jpg"


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def pick_region(rng: random.Random) -> Dict:
    return rng.choices(REGIONS, weights=[r["weight"] for r in REGIONS], k=1)[0]


def random_point(rng: random.Random, index: int) -> Tuple[str, Dict]:
    """Return (relative path, front matter) for one dummy point."""
    region = pick_region(rng)
    title = " ".join(w.capitalize() for w in region["name"].split("-"))
    name = f"Dummy Campsite {title} {index + 1}"
    point_id = str(uuid.UUID(int=rng.getrandbits(128), version=4))

    amenities = rng.sample(AMENITIES, k=rng.randint(2, 5))

    front = {
        "id": point_id,
        "name": name,
        "latitude": round(rng.uniform(*region["lat_range"]), 6),
        "longitude": round(rng.uniform(*region["lon_range"]), 6),
        "continent": "north-america",
        "country": "canada",
        "region": region["name"],
        "amenities": amenities,
        "images": [PLACEHOLDER_IMAGE],
    }
    rel = f"north-america/canada/{region['name']}/{slugify(name)}-{point_id[:8]}.md"
    return rel, front


def render(front: Dict) -> str:
    body = (
        f"This is a **dummy description** for {front['name']}, generated for load testing.\n\n"
        f"The coordinates are {front['latitude']}, {front['longitude']}.\n"
    )
    return f"---\n{yaml.safe_dump(front, sort_keys=False, allow_unicode=True)}---\n\n{body}"


def generate(content_root: Path, count: int, seed: int) -> int:
    rng = random.Random(seed)
    if content_root.exists():
        log.info("Clearing existing data", extra={"extra": {"content_root": str(content_root)}})
        shutil.rmtree(content_root)
    content_root.mkdir(parents=True)

    for i in range(count):
        rel, front = random_point(rng, i)
        path = content_root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render(front), encoding="utf-8")
    return count


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Generate dummy markdown points")
    ap.add_argument("--config", default=default_config_path())
    ap.add_argument("--count", type=int, default=50000)
    ap.add_argument("--seed", type=int, default=42)
    ap.add_argument("--content-root", default=None, help="Overrides source.content_root from the config")
    args = ap.parse_args(argv)

    settings = load_settings(args.config)
    setup_logging(settings.logging.level, settings.logging.format)
    root = Path(args.content_root or settings.source.content_root)

    n = generate(root, args.count, args.seed)
    log.info("Generated dummy points", extra={"extra": {"count": n, "content_root": str(root), "seed": args.seed}})
    return 0


if __name__ == "__main__":
    sys.exit(main())
