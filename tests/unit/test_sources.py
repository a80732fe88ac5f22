"""
Unit tests for the markdown point source
"""

import pytest

from grid_builder.errors import MalformedRecordError, SourceReadError
from grid_builder.sources import MarkdownPointSource, parse_front_matter
from tests.conftest import front_matter, write_point_file


class TestFrontMatter:
    """Front matter extraction"""

    def test_parses_mapping(self):
        text = "---\nid: a\nlatitude: 1.5\n---\n\nbody\n"
        assert parse_front_matter(text) == {"id": "a", "latitude": 1.5}

    def test_byte_order_mark_is_ignored(self):
        assert parse_front_matter("\ufeff---\nid: a\n---\n") == {"id": "a"}

    @pytest.mark.parametrize("text", ["no front matter", "---\nid: a\n", "---\n- a\n- b\n---\n"])
    def test_rejects_bad_front_matter(self, text):
        with pytest.raises(ValueError):
            parse_front_matter(text)


class TestMarkdownPointSource:
    """Discovery and record parsing"""

    def test_list_files_sorted_by_relative_path(self, sample_content):
        source = MarkdownPointSource(sample_content)
        rels = [source.relative_key(p) for p in source.list_files()]
        assert rels == sorted(rels)
        assert len(rels) == 4

    def test_missing_root_lists_nothing(self, tmp_path):
        assert MarkdownPointSource(tmp_path / "nope").list_files() == []

    def test_files_for_region(self, sample_content):
        source = MarkdownPointSource(sample_content)
        names = [p.name for p in source.files_for_region("alberta")]
        assert names == ["banff.md", "broken.md"]

    def test_read_point_sets_public_path(self, sample_content):
        source = MarkdownPointSource(sample_content, path_prefix="/campsites/")
        point = source.read_point(sample_content / "north-america/canada/alberta/banff.md")
        assert point.id == "p1"
        assert point.path == "/campsites/north-america/canada/alberta/banff"
        assert point.country == "canada"
        assert point.amenities == ["water", "fire-pit", "toilet", "hiking"]

    def test_malformed_coordinates(self, sample_content):
        source = MarkdownPointSource(sample_content)
        with pytest.raises(MalformedRecordError):
            source.read_point(sample_content / "north-america/canada/alberta/broken.md")

    def test_missing_name(self, content_root):
        path = write_point_file(content_root, "x/y.md", {"id": "a", "latitude": 1.0, "longitude": 2.0})
        with pytest.raises(MalformedRecordError):
            MarkdownPointSource(content_root).read_point(path)

    def test_unreadable_yaml(self, content_root):
        path = content_root / "bad.md"
        path.write_text("---\nid: [unclosed\n---\n", encoding="utf-8")
        with pytest.raises(SourceReadError):
            MarkdownPointSource(content_root).read_point(path)

    def test_missing_file(self, content_root):
        with pytest.raises(SourceReadError):
            MarkdownPointSource(content_root).read_point(content_root / "gone.md")

    def test_load_points_skips_bad_records(self, sample_content):
        source = MarkdownPointSource(sample_content)
        points, report = source.load_points(max_workers=2)
        assert [p.id for p in points] == ["p1", "p2", "p3"]
        assert report.files == 4
        assert report.loaded == 3
        assert report.malformed == 1
        assert report.skipped == 1

    def test_load_points_keeps_input_order(self, content_root):
        paths = [
            write_point_file(content_root, f"r/{i:02d}.md", front_matter(f"id{i}", 10.0 + i, 20.0))
            for i in range(20)
        ]
        paths.reverse()
        points, _ = MarkdownPointSource(content_root).load_points(paths, max_workers=8)
        assert [p.id for p in points] == [f"id{i}" for i in reversed(range(20))]
