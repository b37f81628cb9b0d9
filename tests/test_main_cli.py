from pathlib import Path

import pytest

from main import _parse_args, main


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "127.0.0.1", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 8080


def test_init_db_and_list_users(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("LAMP_DEMO_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.setenv("LAMP_DB_DRIVER", "sqlite")
    monkeypatch.setenv("LAMP_DB_NAME", str(tmp_path / "data" / "lamp.sqlite3"))

    main(["init-db"])
    assert "Database initialisation complete." in capsys.readouterr().out

    main(["list-users"])
    assert "No users are currently stored." in capsys.readouterr().out


def test_list_users_without_store_exits(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LAMP_DEMO_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.setenv("LAMP_DB_DRIVER", "sqlite")
    monkeypatch.setenv("LAMP_DB_NAME", str(tmp_path / "missing" / "lamp.sqlite3"))

    with pytest.raises(SystemExit, match="Connection failed"):
        main(["list-users"])
