from pathlib import Path

from typer.testing import CliRunner

from grace import __version__
from grace.cli import app
from tests.fakes import echo_plugin, write_plugin

runner = CliRunner()


def _config(tmp_path: Path, *, include_builtin: bool = False) -> Path:
    config_path = tmp_path / "grace.toml"
    builtin = "true" if include_builtin else "false"
    config_path.write_text(
        f'[plugins]\ndirs = ["plugins"]\ninclude_builtin = {builtin}\n',
        encoding="utf-8",
    )
    return config_path


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_plugins_lists_commands_by_category(tmp_path: Path) -> None:
    write_plugin(
        tmp_path / "plugins",
        "downloader_cmds",
        "tiktok.py",
        echo_plugin("ttdl", aliases=["tiktok", "tt"], description="TikTok"),
    )
    config_path = _config(tmp_path)

    result = runner.invoke(app, ["plugins", "--config", str(config_path)])

    assert result.exit_code == 0, result.output
    assert "DOWNLOADER:" in result.output
    assert "!ttdl (aliases: tiktok, tt) - TikTok" in result.output


def test_plugins_exits_nonzero_on_load_errors(tmp_path: Path) -> None:
    write_plugin(tmp_path / "plugins", "general_cmds", "bad.py", "command = 'bad'\n")
    config_path = _config(tmp_path)

    result = runner.invoke(app, ["plugins", "--config", str(config_path)])

    assert result.exit_code == 1
    assert "errors:" in result.output
    assert "GENERAL/bad.py: missing execute" in result.output


def test_plugins_reports_unreadable_root(tmp_path: Path) -> None:
    config_path = _config(tmp_path)

    result = runner.invoke(app, ["plugins", "--config", str(config_path)])

    assert result.exit_code == 1
    assert "Cannot read plugin directory" in result.output


def test_handlers_lists_default_chain(tmp_path: Path) -> None:
    config_path = tmp_path / "grace.toml"
    config_path.write_text(
        '[handlers]\ndisabled = ["ViewOnce Extractor"]\n', encoding="utf-8"
    )

    result = runner.invoke(app, ["handlers", "--config", str(config_path)])

    assert result.exit_code == 0, result.output
    assert "ViewOnce Extractor (disabled)" in result.output


def test_config_prints_effective_settings(tmp_path: Path) -> None:
    config_path = tmp_path / "grace.toml"
    config_path.write_text('prefix = "."\n', encoding="utf-8")

    result = runner.invoke(app, ["config", "--config", str(config_path)])

    assert result.exit_code == 0, result.output
    assert '"prefix": "."' in result.output


def test_explicit_missing_config_is_an_error(tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["config", "--config", str(tmp_path / "missing.toml")]
    )

    assert result.exit_code == 1
    assert "Missing config file" in result.output
