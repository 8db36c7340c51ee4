"""Smoke tests for the narrative_director CLI.

Run with: python -m pytest tests/test_cli.py -v
"""
from __future__ import annotations

import subprocess
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]


def _run_cli(*args: str, timeout: int = 60) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "narrative_director", *args],
        capture_output=True,
        text=True,
        timeout=timeout,
        cwd=REPO_ROOT,
    )


class TestCLIHelp:
    """Verify that all subcommands register and print help without errors."""

    def test_main_help(self):
        result = _run_cli("--help")
        assert result.returncode == 0
        for name in ("validate", "simulate", "snapshot"):
            assert name in result.stdout

    def test_simulate_help(self):
        result = _run_cli("simulate", "--help")
        assert result.returncode == 0
        assert "--ticks" in result.stdout
        assert "--snapshot-out" in result.stdout


class TestValidate:
    def test_repo_data_is_valid(self):
        result = _run_cli("validate")
        assert result.returncode == 0, result.stdout
        assert "[OK] config" in result.stdout

    def test_missing_config(self, tmp_path):
        result = _run_cli("validate", "--config", str(tmp_path / "missing.yaml"))
        assert result.returncode == 1
        assert "[ERROR]" in result.stdout


class TestSimulate:
    def test_json_output_is_deterministic(self):
        first = _run_cli("simulate", "--ticks", "5", "--seed", "3", "--json")
        second = _run_cli("simulate", "--ticks", "5", "--seed", "3", "--json")
        assert first.returncode == 0, first.stderr
        lines = first.stdout.strip().splitlines()
        assert len(lines) == 5
        assert first.stdout == second.stdout

    def test_negative_ticks_rejected(self):
        result = _run_cli("simulate", "--ticks", "-1")
        assert result.returncode == 2

    def test_snapshot_out_then_summary(self, tmp_path):
        snap = tmp_path / "state.json"
        result = _run_cli("simulate", "--ticks", "4", "--snapshot-out", str(snap))
        assert result.returncode == 0, result.stderr
        assert snap.is_file()

        summary = _run_cli("snapshot", str(snap))
        assert summary.returncode == 0
        assert "format_version: 1" in summary.stdout
        assert "tick: 4" in summary.stdout

        resumed = _run_cli("simulate", "--ticks", "1", "--snapshot-in", str(snap))
        assert resumed.returncode == 0
        assert "tick=   5" in resumed.stdout

    def test_snapshot_unreadable(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{nope", encoding="utf-8")
        result = _run_cli("snapshot", str(bad))
        assert result.returncode == 1

    def test_world_file_must_be_a_mapping(self, tmp_path):
        world = tmp_path / "world.yaml"
        world.write_text("- age: 30\n", encoding="utf-8")
        result = _run_cli("simulate", "--ticks", "1", "--world", str(world))
        assert result.returncode == 1
        assert "[ERROR] world file" in result.stdout
        assert "Traceback" not in result.stderr

    def test_fired_outcomes_advance_milestones(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text(
            "scoring: {jitter_scale: 0}\n"
            "milestones:\n"
            "  - {id: arc, stage_thresholds: [1, 2], linked_tags: [home], advancing_tags: [home]}\n",
            encoding="utf-8",
        )
        storylets = tmp_path / "storylets.yaml"
        storylets.write_text(
            "storylets:\n  - {key: 1, id: home, tags: [home], outcome_ref: outcomes/home}\n",
            encoding="utf-8",
        )
        world = tmp_path / "world.yaml"
        world.write_text("age: 30\n", encoding="utf-8")
        result = _run_cli(
            "simulate", "--ticks", "1", "--config", str(config), "--storylets", str(storylets), "--world", str(world)
        )
        assert result.returncode == 0, result.stderr
        assert "queued=[1]" in result.stdout
