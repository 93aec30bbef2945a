"""Tests for threat definition loading and validation."""

import json

import pytest

from analysis.threats import (
    ConfigError,
    build_rule,
    discover_threat_files,
    load_threat_file,
    load_threats,
    parse_definition,
)
from versioning.models import VersionRange


SHAI_HULUD = {
    "name": "Shai-Hulud worm",
    "description": "Self-replicating npm worm",
    "cve": None,
    "reference": "https://example.invalid/advisory",
    "check_global_cache": True,
    "package_versions": {
        "@ctrl/tinycolor": {"vulnerable_versions": ["4.1.1", "4.1.2"], "patched_versions": ["4.1.0"]},
        "ngx-bootstrap": {"vulnerable_ranges": [{"min": "18.1.4", "max": "20.0.4"}]},
    },
    "file_patterns": ["bundle.js"],
    "remediation": ["Remove node_modules", "Rotate npm tokens"],
}


def _write(directory, filename, content):
    path = directory / filename
    if isinstance(content, (dict, list)):
        content = json.dumps(content)
    path.write_text(content, encoding="utf-8")
    return path


class TestParseDefinition:
    def test_per_package_rules(self):
        threat = parse_definition(SHAI_HULUD, "shai-hulud")
        assert threat.id == "shai-hulud"
        assert threat.check_global_cache is True
        assert threat.scan_home is False
        tiny = threat.package_rules["@ctrl/tinycolor"]
        assert tiny.vulnerable_versions == frozenset(["4.1.1", "4.1.2"])
        assert tiny.patched_versions == frozenset(["4.1.0"])
        assert threat.package_rules["ngx-bootstrap"].vulnerable_ranges == (VersionRange("18.1.4", "20.0.4"),)
        assert threat.remediation == ("Remove node_modules", "Rotate npm tokens")
        assert threat.file_patterns == ("bundle.js",)

    def test_legacy_flat_fields_share_one_rule(self):
        threat = parse_definition({
            "name": "React2Shell",
            "description": "RSC deserialization RCE",
            "packages": ["react-server-dom-webpack", "react-server-dom-turbopack"],
            "vulnerable_versions": ["19.0.0", "19.1.0"],
            "patched_versions": ["19.0.1"],
            "min_vulnerable_version": "19.0.0",
        }, "react2shell")
        rules = threat.package_rules
        assert set(rules) == {"react-server-dom-webpack", "react-server-dom-turbopack"}
        assert rules["react-server-dom-webpack"] == rules["react-server-dom-turbopack"]
        assert rules["react-server-dom-webpack"].min_vulnerable == "19.0.0"

    def test_package_versions_take_precedence_over_flat_fields(self):
        threat = parse_definition({
            "name": "x",
            "description": "y",
            "packages": ["legacy"],
            "vulnerable_versions": ["1.0.0"],
            "package_versions": {"modern": {"vulnerable_versions": ["2.0.0"]}},
        }, "x")
        assert set(threat.package_rules) == {"modern"}

    def test_tool_versions(self):
        threat = parse_definition({
            "name": "Node runtime",
            "description": "Vulnerable runtime",
            "tool_versions": {"node": {"min_vulnerable_version": "20.0.0"}},
        }, "node")
        assert threat.tool_rules["node"].min_vulnerable == "20.0.0"

    @pytest.mark.parametrize("value,expected", [(True, True), ("true", True), (1, True), ("no", False), (0, False)])
    def test_flag_coercion(self, value, expected):
        threat = parse_definition({"name": "n", "description": "d", "scan_home": value}, "n")
        assert threat.scan_home is expected

    def test_numeric_versions_become_strings(self):
        rule = build_rule({"vulnerable_versions": [1.5], "min_vulnerable_version": 2})
        assert rule.vulnerable_versions == frozenset(["1.5"])
        assert rule.min_vulnerable == "2"

    def test_incomplete_ranges_are_dropped(self):
        rule = build_rule({"vulnerable_ranges": [{"min": "1.0.0"}, {"min": "2.0.0", "max": "2.1.0"}]})
        assert rule.vulnerable_ranges == (VersionRange("2.0.0", "2.1.0"),)

    def test_missing_description_is_config_error(self):
        with pytest.raises(ConfigError, match="description"):
            parse_definition({"name": "x"}, "x")

    def test_wrong_type_reports_path(self):
        with pytest.raises(ConfigError, match="packages"):
            parse_definition({"name": "x", "description": "y", "packages": "lodash"}, "x")

    def test_blank_name_displays_id(self):
        threat = parse_definition({"name": " ", "description": "d"}, "my-threat")
        assert threat.display_name == "my-threat"


class TestLoadThreats:
    def test_json_and_yaml_files(self, tmp_path):
        _write(tmp_path, "a-json.json", SHAI_HULUD)
        _write(tmp_path, "b-yaml.yaml", "name: YAML threat\ndescription: from yaml\npackages: [lodash]\n")
        _write(tmp_path, "notes.txt", "ignored")
        threats, errors = load_threats(str(tmp_path))
        assert [t.id for t in threats] == ["a-json", "b-yaml"]
        assert errors == {}
        assert threats[1].source_path.endswith("b-yaml.yaml")

    def test_invalid_definition_is_skipped(self, tmp_path):
        _write(tmp_path, "good.json", SHAI_HULUD)
        bad = _write(tmp_path, "bad.json", "{not json")
        missing = _write(tmp_path, "missing.yml", "name: only a name\n")
        threats, errors = load_threats(str(tmp_path))
        assert [t.id for t in threats] == ["good"]
        assert set(errors) == {str(bad), str(missing)}
        assert "invalid JSON" in errors[str(bad)]

    def test_filter_by_name_substring(self, tmp_path):
        _write(tmp_path, "shai-hulud.json", SHAI_HULUD)
        _write(tmp_path, "react2shell.json", {"name": "r", "description": "d"})
        threats, _ = load_threats(str(tmp_path), "shai")
        assert [t.id for t in threats] == ["shai-hulud"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_threats(str(tmp_path / "missing"))

    def test_discover_skips_directories(self, tmp_path):
        (tmp_path / "dir.json").mkdir()
        assert discover_threat_files(str(tmp_path)) == []

    def test_load_threat_file_invalid_yaml(self, tmp_path):
        path = _write(tmp_path, "broken.yaml", "name: [unclosed\n")
        with pytest.raises(ConfigError, match="invalid YAML"):
            load_threat_file(str(path))
