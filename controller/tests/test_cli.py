"""Tests for the one-shot controller CLI."""

from typer.testing import CliRunner

from controller.src.main import app

runner = CliRunner()

def test_destroy_with_wrong_confirmation_exits_1(tmp_path):
    (tmp_path / "terraform").mkdir()

    result = runner.invoke(app, ["run", "destroy", "--path", str(tmp_path), "--confirmation", "Destroy"])

    assert result.exit_code == 1
    assert "confirm" in result.output
    assert "cancelled" in result.output

def test_destroy_confirmation_defaults_to_no(tmp_path):
    (tmp_path / "terraform").mkdir()

    result = runner.invoke(app, ["run", "destroy", "--path", str(tmp_path)])

    assert result.exit_code == 1
    assert "got 'no'" in result.output

def test_destroy_rejects_non_dispatch_trigger(tmp_path):
    result = runner.invoke(app, ["run", "destroy", "--trigger", "push_to_main", "--path", str(tmp_path)])

    assert result.exit_code == 1
