"""Tests for domsnap.cli and domsnap.cli_config modules."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

# We need to isolate CLI imports from _load_config side effects
with patch("dotenv.load_dotenv"):
    from domsnap.cli import _build_options, _parse_args, main

from domsnap.cli_config import load_config

PAGE = '<html><body><div id="card" style="color: red">Hello</div></body></html>'


@pytest.fixture
def page(tmp_path) -> Path:
    path = tmp_path / "page.html"
    path.write_text(PAGE, encoding="utf-8")
    return path


class TestParseArgs:
    def test_render_defaults(self):
        args = _parse_args(["render", "page.html"])
        assert args.command == "render"
        assert args.format == "svg"
        assert args.output is None
        assert args.verbose is False

    def test_verbose_after_subcommand(self):
        assert _parse_args(["extract", "a.css", "-v"]).verbose is True
        assert _parse_args(["-v", "extract", "a.css"]).verbose is True

    def test_command_required(self):
        with pytest.raises(SystemExit):
            _parse_args([])


class TestBuildOptions:
    def test_flags_override_environment(self):
        args = _parse_args(
            ["render", "p.html", "--skip-fonts", "--preferred-font-format", "woff2", "--width", "100"]
        )
        with patch.dict("os.environ", {"DOMSNAP_BACKGROUND_COLOR": "#111"}, clear=True):
            options = _build_options(args)
        assert options.skip_fonts is True
        assert options.preferred_font_format == "woff2"
        assert options.width == 100
        assert options.background_color == "#111"

    def test_timeout(self):
        args = _parse_args(["fonts", "p.html", "--timeout", "3"])
        with patch.dict("os.environ", {}, clear=True):
            options = _build_options(args)
        assert options.fetch_request_init == {"timeout": 3.0}


class TestRender:
    def test_svg_file(self, page, tmp_path):
        out = tmp_path / "out" / "page.svg"
        assert main(["render", str(page), "-o", str(out), "--skip-fonts"]) == 0
        svg = out.read_text(encoding="utf-8")
        assert svg.startswith("<svg")
        assert "Hello" in svg

    def test_markup_stdout_for_element(self, page, capsys):
        code = main(["render", str(page), "--element-id", "card", "--format", "markup", "--skip-fonts"])
        assert code == 0
        out = capsys.readouterr().out
        assert out.startswith('<div xmlns="http://www.w3.org/1999/xhtml" id="card"')
        assert "color: red;" in out

    def test_data_url(self, page, capsys):
        assert main(["render", str(page), "--format", "data-url", "--skip-fonts"]) == 0
        assert capsys.readouterr().out.startswith("data:image/svg+xml;charset=utf-8,")

    def test_zero_size_warns(self, page, tmp_path, caplog):
        assert main(["render", str(page), "-o", str(tmp_path / "a.svg"), "--skip-fonts"]) == 0
        assert "--width and --height" in caplog.text

    def test_explicit_size_does_not_warn(self, page, tmp_path, caplog):
        argv = ["render", str(page), "-o", str(tmp_path / "a.svg"), "--skip-fonts"]
        argv += ["--width", "200", "--height", "100"]
        assert main(argv) == 0
        assert "--width and --height" not in caplog.text
        assert 'width="200" height="100"' in (tmp_path / "a.svg").read_text(encoding="utf-8")

    def test_unknown_element(self, page):
        assert main(["render", str(page), "--element-id", "missing", "--skip-fonts"]) == 1

    def test_missing_file(self, tmp_path):
        assert main(["render", str(tmp_path / "nope.html")]) == 1


class TestFonts:
    def test_prints_css(self, page, capsys):
        with patch("domsnap.cli.get_font_embed_css_async", AsyncMock(return_value="@font-face{}")):
            assert main(["fonts", str(page)]) == 0
        assert "@font-face{}" in capsys.readouterr().out

    def test_empty_result_warns(self, page, capsys):
        with patch("domsnap.cli.get_font_embed_css_async", AsyncMock(return_value="")):
            assert main(["fonts", str(page)]) == 0


class TestExtract:
    def test_one_fragment_per_line(self, tmp_path, capsys):
        css = tmp_path / "style.css"
        css.write_text("/* c */ .a{color:red}\n@media print{.b{color:blue}}", encoding="utf-8")
        assert main(["extract", str(css)]) == 0
        assert capsys.readouterr().out.splitlines() == [".a{color:red}", "@media print{.b{color:blue}}"]

    def test_json(self, tmp_path, capsys):
        css = tmp_path / "style.css"
        css.write_text("@keyframes k{from{a:b}} .a{color:red}", encoding="utf-8")
        assert main(["extract", str(css), "--json"]) == 0
        assert json.loads(capsys.readouterr().out) == ["@keyframes k{from{a:b}}", ".a{color:red}"]


class TestLoadConfig:
    def test_local_env_wins(self, tmp_path):
        (tmp_path / ".env").write_text("DOMSNAP_SKIP_FONTS=1")
        load_env = MagicMock()
        loaded = load_config(
            config_dir=tmp_path / "cfg",
            config_env_file=tmp_path / "cfg" / ".env",
            cwd=tmp_path,
            load_env=load_env,
            copy_file=MagicMock(),
        )
        assert loaded == tmp_path / ".env"
        load_env.assert_called_once_with(tmp_path / ".env")

    def test_config_dir_env(self, tmp_path):
        config_dir = tmp_path / "cfg"
        config_dir.mkdir()
        (config_dir / ".env").write_text("DOMSNAP_CACHE_BUST=1")
        load_env = MagicMock()
        load_config(
            config_dir=config_dir,
            config_env_file=config_dir / ".env",
            cwd=tmp_path / "elsewhere",
            load_env=load_env,
            copy_file=MagicMock(),
        )
        load_env.assert_called_once_with(config_dir / ".env")

    def test_example_copied_when_nothing_found(self, tmp_path):
        config_dir = tmp_path / "cfg"
        copy_file = MagicMock()
        load_env = MagicMock()
        with patch("domsnap.cli_config.Path.is_file", side_effect=[False, False, True]):
            load_config(
                config_dir=config_dir,
                config_env_file=config_dir / ".env",
                cwd=tmp_path,
                load_env=load_env,
                copy_file=copy_file,
            )
        copy_file.assert_called_once()
        load_env.assert_called_once_with(config_dir / ".env")
        assert config_dir.is_dir()

    def test_copy_error_ignored(self, tmp_path):
        load_env = MagicMock()
        with patch("domsnap.cli_config.Path.is_file", side_effect=[False, False, True]):
            loaded = load_config(
                config_dir=tmp_path / "cfg",
                config_env_file=tmp_path / "cfg" / ".env",
                cwd=tmp_path,
                load_env=load_env,
                copy_file=MagicMock(side_effect=OSError("read-only")),
            )
        assert loaded is None
        load_env.assert_not_called()
