"""Tests for the command line entry point (replay mode, exit codes)."""

from __future__ import annotations

import json

import pytest

from block_sampler.cli import EXIT_ACCEPT, EXIT_ERROR, EXIT_REJECT, main

from tests.test_sampler import _NETWORK, _SCENARIO_A, _SCENARIO_B, _blocks


@pytest.fixture
def network_file(tmp_path):
    path = tmp_path / "network.json"
    path.write_text(json.dumps(_NETWORK))
    return path


def _replay_file(tmp_path, paras) -> str:
    path = tmp_path / "blocks.json"
    path.write_text(json.dumps([b.model_dump(mode="json", by_alias=True) for b in _blocks(paras)]))
    return str(path)


class TestCli:
    def test_accept(self, tmp_path, network_file, capsys) -> None:
        code = main(["alice", "--network", str(network_file), "--replay", _replay_file(tmp_path, _SCENARIO_B)])
        assert code == EXIT_ACCEPT
        printed = json.loads(capsys.readouterr().out)
        assert printed["counts"] == {"2000": 7, "2001": 3}
        assert printed["node_name"] == "alice"

    def test_reject(self, tmp_path, network_file) -> None:
        code = main(["alice", "--network", str(network_file), "--replay", _replay_file(tmp_path, _SCENARIO_A)])
        assert code == EXIT_REJECT

    def test_limit_and_rules(self, tmp_path, network_file) -> None:
        code = main([
            "alice", "--network", str(network_file),
            "--replay", _replay_file(tmp_path, _SCENARIO_A),
            "--limit", "3", "--rules", "2000>=3;2001<=0",
        ])
        assert code == EXIT_ACCEPT

    def test_unknown_node(self, tmp_path, network_file) -> None:
        code = main(["zed", "--network", str(network_file), "--replay", _replay_file(tmp_path, _SCENARIO_B)])
        assert code == EXIT_ERROR

    def test_missing_network_file(self, tmp_path) -> None:
        assert main(["alice", "--network", str(tmp_path / "nope.json")]) == EXIT_ERROR

    def test_bad_rules(self, tmp_path, network_file) -> None:
        code = main([
            "alice", "--network", str(network_file),
            "--replay", _replay_file(tmp_path, _SCENARIO_B), "--rules", "garbage",
        ])
        assert code == EXIT_ERROR

    def test_short_replay_is_a_feed_error(self, tmp_path, network_file, caplog) -> None:
        code = main([
            "alice", "--network", str(network_file),
            "--replay", _replay_file(tmp_path, ["2,000"] * 2),
        ])
        assert code == EXIT_ERROR
        assert "replay exhausted" in caplog.text
        assert "timed out" not in caplog.text

    def test_zero_timeout_means_no_deadline(self, tmp_path, network_file, caplog) -> None:
        code = main([
            "alice", "--network", str(network_file),
            "--replay", _replay_file(tmp_path, _SCENARIO_B), "--timeout", "0",
        ])
        assert code == EXIT_ACCEPT
        assert "Invalid configuration" not in caplog.text

    def test_broken_replay_file(self, tmp_path, network_file) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{}")
        code = main(["alice", "--network", str(network_file), "--replay", str(path)])
        assert code == EXIT_ERROR
