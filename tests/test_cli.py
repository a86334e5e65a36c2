"""Tests for the hmip-sync CLI."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from hmip_sync.accessories import Accessory, AccessoryRegistry, accessory_uuid
from hmip_sync.cli import cli

pytestmark = pytest.mark.unit


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _write_config(tmp_path: Path, storage_dir: Path) -> Path:
    path = tmp_path / "hmip.toml"
    path.write_text(
        "[hmip]\n"
        'access_point = "3014F711A0000EDA0992FA32"\n'
        'auth_token = "token"\n'
        f'storage_dir = "{storage_dir}"\n'
    )
    return path


def test_uuid_command(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["uuid", "3014F711A0000EDA0992FA32"])
    assert result.exit_code == 0
    assert result.output.strip() == "E20B2FF7-E4E9-D770-0750-E2FA8AE0F431"


def test_accessories_empty(runner: CliRunner, tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, tmp_path / "storage")
    result = runner.invoke(cli, ["accessories", "--config", str(config_path)])
    assert result.exit_code == 0
    assert "No accessories cached" in result.output


def test_accessories_lists_registry(runner: CliRunner, tmp_path: Path) -> None:
    storage_dir = tmp_path / "storage"
    AccessoryRegistry(storage_dir).register_new(
        [
            Accessory(
                uuid=accessory_uuid("d1"),
                display_name="Living room shutter",
                context={"device": {"type": "FULL_FLUSH_SHUTTER"}},
            )
        ]
    )
    config_path = _write_config(tmp_path, storage_dir)

    result = runner.invoke(cli, ["accessories", "--config", str(config_path)])

    assert result.exit_code == 0
    assert accessory_uuid("d1") in result.output
    assert "FULL_FLUSH_SHUTTER" in result.output
    assert "Living room shutter" in result.output


def test_invalid_config_exits_nonzero(runner: CliRunner, tmp_path: Path) -> None:
    path = tmp_path / "hmip.toml"
    path.write_text("[other]\n")
    result = runner.invoke(cli, ["accessories", "--config", str(path)])
    assert result.exit_code == 1
    assert "Configuration error" in result.output


def test_missing_config_path_rejected(runner: CliRunner, tmp_path: Path) -> None:
    result = runner.invoke(cli, ["run", "--config", str(tmp_path / "absent.toml")])
    assert result.exit_code == 2
