"""
Unit tests for the dummy dataset generator
"""

from grid_builder.sources import MarkdownPointSource
from scripts.generate_dummy_points import REGIONS, generate


def tree(root):
    return {p.relative_to(root).as_posix(): p.read_text(encoding="utf-8") for p in sorted(root.rglob("*.md"))}


class TestGenerateDummyPoints:
    """Seeded generation of markdown sources"""

    def test_generated_files_load(self, tmp_path):
        root = tmp_path / "content"
        assert generate(root, 25, seed=3) == 25
        points, report = MarkdownPointSource(root).load_points()
        assert report.loaded == 25
        assert report.skipped == 0
        names = {r["name"] for r in REGIONS}
        for p in points:
            assert p.region in names
            assert p.path.startswith(f"/campsites/north-america/canada/{p.region}/")
            assert 2 <= len(p.amenities) <= 5
            assert len(set(p.amenities)) == len(p.amenities)

    def test_same_seed_same_tree(self, tmp_path):
        a, b = tmp_path / "a", tmp_path / "b"
        generate(a, 10, seed=9)
        generate(b, 10, seed=9)
        assert tree(a) == tree(b)

    def test_clears_existing_content(self, tmp_path):
        root = tmp_path / "content"
        root.mkdir()
        (root / "stale.md").write_text("old", encoding="utf-8")
        generate(root, 1, seed=1)
        assert not (root / "stale.md").exists()
