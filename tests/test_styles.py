"""Tests for codenav.core.styles."""

import pytest
import yaml

from codenav.backends.models import Hit
from codenav.core.render import Style, classify_line, render_hit
from codenav.core.styles import StyleSheet


class TestStyleSheet:
    def test_default_styles(self) -> None:
        styles = StyleSheet()
        assert styles.code(Style.MATCH) == "1;31"
        assert styles.code(Style.INFO) == "1;36"

    def test_paint_hit(self) -> None:
        styles = StyleSheet()
        painted = styles.paint(render_hit(Hit(12, 3, 6, "fn", "var testing = 1;")))
        assert painted == "12:var\x1b[1;31m te\x1b[0msting = 1; \x1b[2;3m// found in fn\x1b[0m"

    def test_paint_file_header(self) -> None:
        (line,) = classify_line("File: foo/bar.js", None).lines
        assert StyleSheet().paint(line) == "File: \x1b[1;36mfoo/bar.js\x1b[0m"

    def test_disabled(self) -> None:
        styles = StyleSheet(enabled=False)
        line = render_hit(Hit(12, 3, 6, "fn", "var testing = 1;"))
        assert styles.paint(line) == line.text

    def test_plain_section(self) -> None:
        styles = StyleSheet(section_path="styles.none")
        line = render_hit(Hit(1, 0, 1, "", "x"))
        assert styles.paint(line) == "1:x"

    def test_custom_file(self, tmp_path) -> None:
        style_file = tmp_path / "styles.yaml"
        style_file.write_text("match: '4'\n")
        styles = StyleSheet(style_file, section_path=None)
        assert styles.code(Style.MATCH) == "4"
        assert styles.code(Style.KEYWORD) == ""

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            StyleSheet(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path) -> None:
        style_file = tmp_path / "styles.yaml"
        style_file.write_text("styles: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            StyleSheet(style_file)

    def test_missing_section(self) -> None:
        with pytest.raises(ValueError):
            StyleSheet(section_path="styles.neon")
