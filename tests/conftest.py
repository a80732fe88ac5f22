"""
Shared fixtures: a throwaway markdown content tree and settings that point
every grid path into tmp_path.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import pytest
import yaml

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(project_root)

from common.config import GridSettings, settings_from_dict
from common.logging_setup import JsonFormatter, TextFormatter
from common.types import PointRecord


def write_point_file(root: Path, rel: str, front: Dict[str, Any], body: str = "Description.\n") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"---\n{yaml.safe_dump(front, sort_keys=False)}---\n\n{body}", encoding="utf-8")
    return path


def front_matter(
    point_id: str,
    lat: float,
    lng: float,
    *,
    country: str = "canada",
    region: str = "alberta",
    name: Optional[str] = None,
    amenities=("water", "fire-pit", "toilet", "hiking"),
    images=("a.jpg",),
) -> Dict[str, Any]:
    return {
        "id": point_id,
        "name": name or f"Point {point_id}",
        "latitude": lat,
        "longitude": lng,
        "continent": "north-america",
        "country": country,
        "region": region,
        "amenities": list(amenities),
        "images": list(images),
    }


def make_point(point_id: str, lat: float, lng: float, **kw) -> PointRecord:
    fm = front_matter(point_id, lat, lng, **kw)
    return PointRecord(
        id=fm["id"],
        name=fm["name"],
        latitude=fm["latitude"],
        longitude=fm["longitude"],
        continent=fm["continent"],
        country=fm["country"],
        region=fm["region"],
        path=f"/campsites/north-america/{fm['country']}/{fm['region']}/{point_id}",
        amenities=fm["amenities"],
        images=fm["images"],
    )


@pytest.fixture
def content_root(tmp_path) -> Path:
    root = tmp_path / "content"
    root.mkdir()
    return root


@pytest.fixture
def sample_content(content_root) -> Path:
    """Three points in two countries plus one malformed record."""
    write_point_file(content_root, "north-america/canada/alberta/banff.md", front_matter("p1", 51.17, -115.57))
    write_point_file(
        content_root,
        "north-america/canada/british-columbia/lost-lake.md",
        front_matter("p2", 49.0, -123.0, region="british-columbia"),
    )
    write_point_file(
        content_root,
        "north-america/usa/washington/rainier.md",
        front_matter("p3", 46.85, -121.76, country="usa", region="washington"),
    )
    write_point_file(
        content_root,
        "north-america/canada/alberta/broken.md",
        {"id": "bad", "name": "Broken", "latitude": "north", "longitude": -115.0},
    )
    return content_root


@pytest.fixture
def settings_dict(tmp_path, content_root) -> Dict[str, Any]:
    out = tmp_path / "static"
    return {
        "source": {"content_root": str(content_root)},
        "build": {
            "grid_root": str(out / "api" / "grid"),
            "minimal_index_path": str(out / "api" / "campsites-minimal.json"),
            "cache_path": str(out / ".grid-cache.json"),
            "max_concurrent_files": 4,
        },
        "logging": {"level": "WARNING"},
    }


@pytest.fixture
def settings(settings_dict) -> GridSettings:
    return settings_from_dict(settings_dict)


@pytest.fixture
def config_file(tmp_path, settings_dict) -> Path:
    path = tmp_path / "grid.yaml"
    path.write_text(yaml.safe_dump(settings_dict), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def restore_root_logging():
    """The CLI reconfigures the root logger; put it back after each test."""
    root = logging.getLogger()
    before, level = set(root.handlers), root.level
    configured = getattr(root, "_grid_configured", False)
    yield
    for handler in list(root.handlers):
        if handler not in before and isinstance(handler.formatter, (JsonFormatter, TextFormatter)):
            root.removeHandler(handler)
    root.setLevel(level)
    root._grid_configured = configured
