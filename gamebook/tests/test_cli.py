"""
Tests for the command-line interface and its exit codes.
"""

import json

import pytest

from ..cli import EXIT_CONFIG, EXIT_FAILED, EXIT_OK, main
from .conftest import write_content


def write_script(folder, name: str, steps: list, **extra):
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / f"{name}.json"
    path.write_text(json.dumps({"meta": {"name": name}, "steps": steps, **extra}), encoding="utf-8")
    return path


DIRECT_ROUTE = [
    {"action": "choose", "choiceIndex": 0, "expectedScene": "sc_1_0_002"},
    {"action": "choose", "choiceIndex": 1, "expectedScene": "sc_1_0_900"},
]


class TestValidate:
    """Tests for `gamebook validate`."""

    def test_valid_content(self, content_dir, capsys):
        assert main(["validate", "--content-path", str(content_dir)]) == EXIT_OK
        assert "Validation passed" in capsys.readouterr().out

    def test_strict_fails_on_warnings(self, content_dir):
        """The sample content has a loop, which is a warning."""
        assert main(["validate", "--content-path", str(content_dir), "--strict"]) == EXIT_FAILED

    def test_errors_fail(self, tmp_path, manifest_data, scene_data, capsys):
        scene_data["sc_1_0_003"]["choices"][0]["to"] = "sc_gone"
        write_content(tmp_path, manifest_data, scene_data)
        assert main(["validate", "--content-path", str(tmp_path)]) == EXIT_FAILED
        assert "broken-link" in capsys.readouterr().out

    def test_missing_content(self, tmp_path):
        assert main(["validate", "--content-path", str(tmp_path)]) == EXIT_CONFIG


class TestRun:
    """Tests for `gamebook run` and `gamebook run-all`."""

    def test_passing_script(self, content_dir, tmp_path, capsys):
        script = write_script(tmp_path / "scripts", "direct", DIRECT_ROUTE)
        assert main(["run", str(script), "--content-path", str(content_dir)]) == EXIT_OK
        out = capsys.readouterr().out
        assert "[PASSED] direct" in out
        assert "1/1 playthroughs passed" in out

    def test_failing_script(self, content_dir, tmp_path, capsys):
        script = write_script(tmp_path / "scripts", "locked", [{"action": "choose", "choiceIndex": 1}])
        assert main(["run", str(script), "--content-path", str(content_dir)]) == EXIT_FAILED
        assert "You need the booth key" in capsys.readouterr().out

    def test_ci_prints_summary_only(self, content_dir, tmp_path, capsys):
        script = write_script(tmp_path / "scripts", "direct", DIRECT_ROUTE)
        main(["run", str(script), "--content-path", str(content_dir), "--ci"])
        out = capsys.readouterr().out
        assert "[PASSED]" not in out
        assert "1/1 playthroughs passed" in out

    def test_output_file(self, content_dir, tmp_path):
        script = write_script(tmp_path / "scripts", "direct", DIRECT_ROUTE)
        output = tmp_path / "result.json"
        main(["run", str(script), "--content-path", str(content_dir), "-o", str(output)])
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["passed"] == 1
        assert data["results"][0]["visitedScenes"] == ["sc_1_0_001", "sc_1_0_002", "sc_1_0_900"]

    def test_missing_script(self, content_dir, tmp_path):
        assert main(["run", str(tmp_path / "nope.json"), "--content-path", str(content_dir)]) == EXIT_CONFIG

    def test_invalid_script(self, content_dir, tmp_path):
        script = write_script(tmp_path / "scripts", "empty", [])
        assert main(["run", str(script), "--content-path", str(content_dir)]) == EXIT_CONFIG

    def test_missing_content(self, tmp_path):
        script = write_script(tmp_path / "scripts", "direct", DIRECT_ROUTE)
        assert main(["run", str(script), "--content-path", str(tmp_path / "nowhere")]) == EXIT_CONFIG

    def test_run_all(self, content_dir, tmp_path, capsys):
        folder = tmp_path / "scripts"
        write_script(folder, "a_direct", DIRECT_ROUTE)
        write_script(folder, "b_locked", [{"action": "choose", "choiceIndex": 1}])
        assert main(["run-all", str(folder), "--content-path", str(content_dir)]) == EXIT_FAILED
        out = capsys.readouterr().out
        assert out.index("a_direct") < out.index("b_locked")
        assert "1/2 playthroughs passed" in out

    def test_run_all_empty_directory(self, content_dir, tmp_path):
        (tmp_path / "scripts").mkdir()
        assert main(["run-all", str(tmp_path / "scripts"), "--content-path", str(content_dir)]) == EXIT_CONFIG


class TestCoverage:
    """Tests for `gamebook coverage`."""

    def test_coverage_report(self, content_dir, tmp_path, capsys):
        folder = tmp_path / "scripts"
        write_script(folder, "direct", DIRECT_ROUTE)
        output = tmp_path / "coverage.json"
        assert main(["coverage", str(folder), "--content-path", str(content_dir), "-o", str(output)]) == EXIT_OK
        assert "3/6" in capsys.readouterr().out
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["uncoveredScenes"] == ["sc_1_0_003", "sc_1_0_004", "sc_1_0_005"]


class TestParser:
    """Tests for argument handling."""

    def test_no_command(self):
        assert main([]) == EXIT_CONFIG

    def test_unknown_command(self):
        with pytest.raises(SystemExit):
            main(["dance"])
