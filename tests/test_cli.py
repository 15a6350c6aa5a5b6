"""
Tests for the CLI commands that work against local files.
"""

import json

import pytest

from chatrelay import cli
from chatrelay import config as cfg_mod
from chatrelay.config import Config, StorageConfig, WiretapConfig
from chatrelay.storage.sqlite_store import SQLiteStore
from chatrelay.wiretap import WireLog


@pytest.fixture
def cfg(tmp_path):
    """Point the cached config at temp files."""
    orig = cfg_mod._config
    cfg_mod._config = Config(
        storage=StorageConfig(sqlite_path=str(tmp_path / "chat.db")),
        wiretap=WiretapConfig(path=str(tmp_path / "wire.jsonl")),
    )
    yield cfg_mod._config
    cfg_mod._config = orig


def test_parser_aliases():
    parser = cli.build_parser()
    assert parser.parse_args(["dump"]).func is cli.cmd_export
    assert parser.parse_args(["ls"]).func is cli.cmd_history
    assert parser.parse_args(["start", "--port", "4000"]).port == 4000


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 0
    assert "chatrelay" in capsys.readouterr().out


def test_history_empty(cfg, capsys):
    assert cli.main(["history"]) == 0
    assert "No conversations yet" in capsys.readouterr().out


def test_history_list_and_show(cfg, capsys):
    SQLiteStore(cfg.storage.sqlite_path).append_exchange("c1", "What is Python?", "A language.")

    assert cli.main(["history"]) == 0
    out = capsys.readouterr().out
    assert "c1" in out and "What is Python?" in out

    assert cli.main(["history", "c1"]) == 0
    out = capsys.readouterr().out
    assert "USER" in out and "BOT" in out and "A language." in out


def test_history_show_missing(cfg):
    assert cli.main(["history", "nope"]) == 1


def test_export(cfg, tmp_path):
    SQLiteStore(cfg.storage.sqlite_path).append_exchange("c1", "q", "a")
    out = tmp_path / "export.json"

    assert cli.main(["export", "-o", str(out), "--pretty"]) == 0
    data = json.loads(out.read_text())
    assert data[0]["conversationId"] == "c1"
    assert len(data[0]["messages"]) == 2


def test_tap(cfg, capsys):
    wire = WireLog(cfg.wiretap.path)
    wire.log(direction="inbound", role="user", content="hello wire", conversation_id="c1")
    wire.close()

    assert cli.main(["tap", "-n", "5"]) == 0
    assert "hello wire" in capsys.readouterr().out

    assert cli.main(["tap", "--raw"]) == 0
    line = capsys.readouterr().out.strip()
    assert json.loads(line)["content"] == "hello wire"
