"""
Unit tests for settings loading and logging setup
"""

import io
import json
import logging
import os
from unittest.mock import patch

import pytest

from common.config import default_config_path, load_settings, settings_from_dict
from common.logging_setup import JsonFormatter, TextFormatter, setup_logging


class TestSettings:
    """YAML configuration"""

    def test_missing_file_gives_defaults(self, tmp_path):
        s = load_settings(tmp_path / "absent.yaml")
        assert s.build.zoom_levels == (2, 4, 6, 8)
        assert s.build.detailed_zoom == 6
        assert s.build.max_amenities == 3
        assert s.source.content_root == "static/content/campsites"
        assert s.loader.display_thresholds == {2: 4.0, 4: 7.0, 6: 10.0}
        assert s.logging.format == "json"

    def test_yaml_overrides(self, tmp_path):
        path = tmp_path / "grid.yaml"
        path.write_text(
            "build:\n  zoom_levels: [8, 2]\n  detailed_zoom: 8\n"
            "loader:\n  display_thresholds: {2: 5}\n"
            "logging:\n  level: debug\n",
            encoding="utf-8",
        )
        s = load_settings(path)
        assert s.build.zoom_levels == (2, 8)
        assert s.build.detailed_zoom == 8
        assert s.loader.display_thresholds == {2: 5.0}
        assert s.logging.level == "DEBUG"

    def test_shipped_config_matches_defaults(self):
        shipped = os.path.join(os.path.dirname(__file__), "..", "..", "config", "grid.yaml")
        assert load_settings(shipped) == settings_from_dict({})

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "grid.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="top-level mapping"):
            load_settings(path)

    @pytest.mark.parametrize(
        "raw",
        [
            {"build": {"zoom_levels": []}},
            {"build": {"zoom_levels": [2, 2]}},
            {"build": {"zoom_levels": [-1]}},
            {"loader": {"max_concurrency": 0}},
            {"logging": {"format": "xml"}},
        ],
    )
    def test_validation(self, raw):
        with pytest.raises(ValueError):
            settings_from_dict(raw)

    def test_config_path_from_env(self):
        with patch.dict(os.environ, {"GRID_CONFIG": "/etc/grid.yaml"}):
            assert default_config_path() == "/etc/grid.yaml"
        with patch.dict(os.environ, {}, clear=True):
            assert default_config_path() == "config/grid.yaml"


class TestLogFormatters:
    """Structured log lines"""

    def _emit(self, formatter, **extra):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(formatter)
        logger = logging.getLogger("tests.formatter")
        logger.propagate = False
        logger.handlers = [handler]
        logger.setLevel(logging.INFO)
        logger.warning("Skipping record", extra=extra)
        return stream.getvalue().strip()

    def test_json_line(self):
        line = json.loads(self._emit(JsonFormatter(), extra={"path": "a.md"}))
        assert line["lvl"] == "WARNING"
        assert line["name"] == "tests.formatter"
        assert line["msg"] == "Skipping record"
        assert line["extra"] == {"path": "a.md"}
        assert isinstance(line["t"], int)

    def test_text_line(self):
        line = self._emit(TextFormatter(), extra={"path": "a.md"})
        assert "WARNING" in line
        assert line.endswith("Skipping record path=a.md")


class TestSetupLogging:
    """Root handler installation"""

    def test_later_calls_keep_first_configuration(self):
        setup_logging("DEBUG", "text", force=True)
        setup_logging("ERROR", "json")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[-1].formatter, TextFormatter)

    def test_force_reconfigures(self):
        setup_logging("DEBUG", "text", force=True)
        setup_logging("WARNING", "json", force=True)
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_env_fallback_and_unknown_level(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "chatty", "LOG_FORMAT": "text"}):
            setup_logging(force=True)
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert isinstance(root.handlers[0].formatter, TextFormatter)
