"""Tests for argument parsing, runtime configuration and the CLI entrypoint."""

import json

import pytest

import threatscan
from args import parse_args
from cli_config import apply_cli_overrides, apply_runtime_config, load_runtime_config, resolve_threats_dir
from constants import Constants, ExitCodes


@pytest.fixture(autouse=True)
def isolated_runtime(tmp_path, monkeypatch):
    """Keep Constants, environment and logging handlers untouched between tests."""
    for attr in (
        "MAX_WORKERS",
        "CHECK_GLOBAL_CACHE",
        "DEFAULT_THREATS_DIR",
        "GLOBAL_SCAN_MAX_DEPTH",
        "TOOL_TIMEOUT",
    ):
        monkeypatch.setattr(Constants, attr, getattr(Constants, attr))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv(Constants.ENV_LOG_LEVEL, "INFO")
    monkeypatch.delenv(Constants.ENV_THREATS_DIR, raising=False)
    monkeypatch.delenv(Constants.ENV_CONFIG, raising=False)
    monkeypatch.setattr(threatscan, "configure_logging", lambda **kwargs: None)


def _project(tmp_path, version):
    project = tmp_path / "project"
    project.mkdir()
    (project / "package-lock.json").write_text(json.dumps({
        "lockfileVersion": 3,
        "packages": {"node_modules/left-pad": {"version": version}},
    }))
    return project


def _threats(tmp_path):
    threats = tmp_path / "threats"
    threats.mkdir()
    (threats / "left-pad.json").write_text(json.dumps({
        "name": "left-pad compromise",
        "description": "demo",
        "packages": ["left-pad"],
        "vulnerable_versions": ["1.0.0"],
        "remediation": ["Upgrade left-pad"],
    }))
    return threats


def _exit_code(argv):
    with pytest.raises(SystemExit) as exc:
        threatscan.main(argv)
    return exc.value.code


class TestParseArgs:
    def test_defaults(self):
        args = parse_args([])
        assert args.directories == []
        assert args.THREAT is None
        assert args.VERBOSE is False
        assert args.CHECK_GLOBAL is False
        assert args.LOG_LEVEL == "INFO"

    def test_flags(self):
        args = parse_args(["-t", "shai", "-c", "defs", "-v", "--global", "-o", "out.json", "--workers", "4", "a", "b"])
        assert args.THREAT == "shai"
        assert args.THREATS_DIR == "defs"
        assert args.VERBOSE and args.CHECK_GLOBAL
        assert args.OUTPUT == "out.json"
        assert args.WORKERS == 4
        assert args.directories == ["a", "b"]

    def test_check_global_long_form(self):
        assert parse_args(["--check-global"]).CHECK_GLOBAL is True


class TestRuntimeConfig:
    def test_apply_runtime_config(self):
        apply_runtime_config({
            "threats_dir": "/etc/threats",
            "workers": 3,
            "check_global_cache": True,
            "limits": {"global_scan_max_depth": 2, "tool_timeout": "5", "bogus": 1},
        })
        assert Constants.DEFAULT_THREATS_DIR == "/etc/threats"
        assert Constants.MAX_WORKERS == 3
        assert Constants.CHECK_GLOBAL_CACHE is True
        assert Constants.GLOBAL_SCAN_MAX_DEPTH == 2
        assert Constants.TOOL_TIMEOUT == 5

    def test_invalid_values_ignored(self):
        before = Constants.MAX_WORKERS
        apply_runtime_config({"workers": "many", "limits": {"tool_timeout": -1}})
        assert Constants.MAX_WORKERS == before
        assert Constants.TOOL_TIMEOUT == 10

    def test_load_from_file(self, tmp_path):
        cfg = tmp_path / "threatscan.yml"
        cfg.write_text("workers: 6\n")
        load_runtime_config(str(cfg))
        assert Constants.MAX_WORKERS == 6

    def test_cli_overrides_win(self, tmp_path):
        apply_runtime_config({"workers": 3})
        apply_cli_overrides(parse_args(["--workers", "8", "--global"]))
        assert Constants.MAX_WORKERS == 8
        assert Constants.CHECK_GLOBAL_CACHE is True

    def test_threats_dir_precedence(self, monkeypatch):
        assert resolve_threats_dir(parse_args([])) == Constants.DEFAULT_THREATS_DIR
        monkeypatch.setenv(Constants.ENV_THREATS_DIR, "/from/env")
        assert resolve_threats_dir(parse_args([])) == "/from/env"
        assert resolve_threats_dir(parse_args(["-c", "/from/cli"])) == "/from/cli"

    def test_environment_beats_yaml_threats_dir(self, monkeypatch):
        apply_runtime_config({"threats_dir": "/from/yaml"})
        assert resolve_threats_dir(parse_args([])) == "/from/yaml"
        monkeypatch.setenv(Constants.ENV_THREATS_DIR, "/from/env")
        assert resolve_threats_dir(parse_args([])) == "/from/env"

    @pytest.mark.parametrize(
        "raw,expected",
        [("false", False), ("no", False), ("0", False), ("true", True), ("yes", True), (1, True), (True, True)],
    )
    def test_check_global_cache_string_values(self, raw, expected):
        Constants.CHECK_GLOBAL_CACHE = not expected
        apply_runtime_config({"check_global_cache": raw})
        assert Constants.CHECK_GLOBAL_CACHE is expected


class TestMain:
    def test_clean_project_exits_zero(self, tmp_path, monkeypatch):
        monkeypatch.chdir(_project(tmp_path, "1.3.0"))
        assert _exit_code(["-c", str(_threats(tmp_path))]) == ExitCodes.SUCCESS.value

    def test_vulnerable_project_exits_two(self, tmp_path, monkeypatch):
        monkeypatch.chdir(_project(tmp_path, "1.0.0"))
        assert _exit_code(["-c", str(_threats(tmp_path))]) == ExitCodes.INDICATORS_FOUND.value

    def test_missing_threats_dir_exits_one(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert _exit_code(["-c", str(tmp_path / "nope")]) == ExitCodes.FILE_ERROR.value

    def test_no_matching_threat_exits_one(self, tmp_path, monkeypatch):
        monkeypatch.chdir(_project(tmp_path, "1.0.0"))
        assert _exit_code(["-c", str(_threats(tmp_path)), "-t", "nothing"]) == ExitCodes.FILE_ERROR.value

    def test_json_export(self, tmp_path, monkeypatch):
        monkeypatch.chdir(_project(tmp_path, "1.0.0"))
        out = tmp_path / "report.json"
        assert _exit_code(["-c", str(_threats(tmp_path)), "-o", str(out)]) == ExitCodes.INDICATORS_FOUND.value
        data = json.loads(out.read_text())
        assert data["threatsScanned"] == 1
        assert data["indicatorsFound"] == 1
        result = data["outcomes"][0]["results"][0]
        assert result == {
            "subject": "left-pad",
            "kind": "package",
            "status": "vulnerable",
            "version": "1.0.0",
            "source": "root_lock",
        }

    def test_invalid_definition_is_reported_not_fatal(self, tmp_path, monkeypatch):
        monkeypatch.chdir(_project(tmp_path, "1.3.0"))
        threats = _threats(tmp_path)
        (threats / "broken.json").write_text("{")
        out = tmp_path / "report.json"
        assert _exit_code(["-c", str(threats), "-o", str(out)]) == ExitCodes.SUCCESS.value
        assert list(json.loads(out.read_text())["configErrors"]) == [str(threats / "broken.json")]

    def test_scan_roots(self, tmp_path):
        assert threatscan.build_scan_roots(parse_args(["a", "b"])) == [".", "a", "b"]
        assert threatscan.build_scan_roots(parse_args(["a", "--scan-home"])) == [str(tmp_path / "home")]
