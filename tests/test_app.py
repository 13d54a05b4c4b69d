"""命令行入口测试。

测试参数解析、子命令执行和退出码映射。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from ytdlp_bridge import app
from ytdlp_bridge.app import EXIT_FAILURE, EXIT_OK, EXIT_USAGE, parse_args, run_command
from ytdlp_bridge.config import Config
from ytdlp_bridge.runtime.process_runner import IS_WINDOWS

posix_only = pytest.mark.skipif(IS_WINDOWS, reason="POSIX-specific test")


class TestParser:
    """测试参数解析。"""

    def test_stream_with_extra_args(self):
        args = parse_args(
            ["stream", "https://x", "-o", "out.bin", "--", "-f", "best"]
        )
        assert args.command == "stream"
        assert args.target == "https://x"
        assert args.output == "out.bin"
        assert args.extra == ["-f", "best"]
        assert args.handshake_timeout is None

    def test_stream_options_before_passthrough(self):
        args = parse_args([
            "stream", "t", "--handshake-timeout", "2.5", "--", "--stdout", "x", "--", "-v",
        ])
        assert args.handshake_timeout == 2.5
        assert args.extra == ["--stdout", "x", "--", "-v"]

    def test_run_with_extra_args(self):
        args = parse_args(["run", "t", "--live", "--", "-f", "best"])
        assert args.target == "t"
        assert args.live is True
        assert args.extra == ["-f", "best"]

    def test_trailing_separator_only(self):
        assert parse_args(["run", "t", "--"]).extra == []

    def test_extra_args_rejected_for_other_commands(self, capsys: pytest.CaptureFixture[str]):
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["info", "cats", "--", "-v"])
        assert exc_info.value.code == 2
        assert "does not accept extra yt-dlp arguments" in capsys.readouterr().err

    def test_unseparated_options_rejected(self):
        with pytest.raises(SystemExit):
            parse_args(["stream", "t", "-f", "best"])

    def test_install_version_option(self):
        args = parse_args(["install", "/tmp/yt-dlp", "--version", "2024.12.31"])
        assert args.path == "/tmp/yt-dlp"
        assert args.tag == "2024.12.31"

    def test_install_defaults_to_latest(self):
        args = parse_args(["install", "/tmp/yt-dlp"])
        assert args.tag is None

    def test_global_binary(self):
        args = parse_args(["--binary", "/opt/yt-dlp", "run", "t"])
        assert args.binary == "/opt/yt-dlp"
        assert args.extra == []

    def test_command_required(self):
        with pytest.raises(SystemExit) as exc_info:
            parse_args([])
        assert exc_info.value.code == 2

    def test_version(self, capsys: pytest.CaptureFixture[str]):
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--version"])
        assert exc_info.value.code == 0
        assert "ytdlp-bridge 0.1.0" in capsys.readouterr().out


class TestUsageErrors:
    """输入校验错误映射到退出码 2。"""

    @pytest.mark.asyncio
    async def test_empty_target(self, config: Config, capsys: pytest.CaptureFixture[str]):
        args = parse_args(["--binary", "/opt/yt-dlp", "run", ""])
        assert await run_command(args, config) == EXIT_USAGE
        assert "empty target" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_empty_binary(self, config: Config, capsys: pytest.CaptureFixture[str]):
        args = parse_args(["--binary", "", "info", "cats"])
        assert await run_command(args, config) == EXIT_USAGE
        assert "invalid binary path" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_binary_falls_back_to_config(self, tmp_path: Path):
        config = Config(binary_path=str(tmp_path / "missing"))
        args = parse_args(["run", "t"])
        assert await run_command(args, config) == EXIT_FAILURE
        assert args.binary == str(tmp_path / "missing")


@posix_only
class TestYtDlpCommands:
    """run / info / stream 针对假 yt-dlp。"""

    @pytest.mark.asyncio
    async def test_run_success(self, fake_ytdlp: Path, config: Config):
        args = parse_args(["--binary", str(fake_ytdlp), "run", "t"])
        assert await run_command(args, config) == EXIT_OK

    @pytest.mark.asyncio
    async def test_run_failure_prints_output(
        self, fake_ytdlp: Path, config: Config, capsys: pytest.CaptureFixture[str]
    ):
        args = parse_args([
            "--binary", str(fake_ytdlp), "run", "t",
            "--", "--stderr", "ERROR: unsupported URL", "--exit-code", "1",
        ])
        assert await run_command(args, config) == EXIT_FAILURE
        err = capsys.readouterr().err
        assert "exit status 1" in err
        assert "ERROR: unsupported URL" in err

    @pytest.mark.asyncio
    async def test_run_live_prints_merged_output(
        self, fake_ytdlp: Path, config: Config, capsys: pytest.CaptureFixture[str]
    ):
        args = parse_args([
            "--binary", str(fake_ytdlp), "run", "t", "--live",
            "--", "--stderr", "[info] working", "--stdout", "done",
        ])
        assert await run_command(args, config) == EXIT_OK
        out = capsys.readouterr().out
        assert "[info] working" in out
        assert out.endswith("done")

    @pytest.mark.asyncio
    async def test_run_live_non_zero_exit(self, fake_ytdlp: Path, config: Config):
        args = parse_args([
            "--binary", str(fake_ytdlp), "run", "t", "--live", "--", "--exit-code", "3",
        ])
        assert await run_command(args, config) == EXIT_FAILURE

    @pytest.mark.asyncio
    async def test_info_prints_json(
        self, fake_ytdlp: Path, config: Config, capsys: pytest.CaptureFixture[str]
    ):
        args = parse_args(["--binary", str(fake_ytdlp), "info", "cats"])
        assert await run_command(args, config) == EXIT_OK
        assert json.loads(capsys.readouterr().out) == {
            "id": "x", "title": "cats", "thumbnail": "u", "duration": 42,
        }

    @pytest.mark.asyncio
    async def test_stream_to_file(self, fake_ytdlp: Path, config: Config, tmp_path: Path):
        output = tmp_path / "out.bin"
        args = parse_args([
            "--binary", str(fake_ytdlp), "stream", "t", "-o", str(output),
            "--", "--stderr", "[download] 0%", "--stdout", "PAYLOAD",
        ])
        assert await run_command(args, config) == EXIT_OK
        assert output.read_bytes() == b"PAYLOAD"

    @pytest.mark.asyncio
    async def test_stream_handshake_error(
        self,
        fake_ytdlp: Path,
        config: Config,
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
    ):
        output = tmp_path / "out.bin"
        args = parse_args([
            "--binary", str(fake_ytdlp), "stream", "t", "-o", str(output),
            "--", "--stderr", "ERROR: disk full", "--exit-code", "1",
        ])
        assert await run_command(args, config) == EXIT_FAILURE
        assert "disk full" in capsys.readouterr().err
        assert not output.exists()

    @pytest.mark.asyncio
    async def test_stream_non_zero_exit(
        self, fake_ytdlp: Path, config: Config, tmp_path: Path
    ):
        output = tmp_path / "out.bin"
        args = parse_args([
            "--binary", str(fake_ytdlp), "stream", "t", "-o", str(output),
            "--", "--stderr", "[download] 0%", "--stdout", "AB", "--exit-code", "4",
        ])
        assert await run_command(args, config) == EXIT_FAILURE
        assert output.read_bytes() == b"AB"

    @pytest.mark.asyncio
    async def test_stream_handshake_timeout(self, fake_ytdlp: Path, config: Config):
        args = parse_args([
            "--binary", str(fake_ytdlp), "stream", "t", "--handshake-timeout", "0.5",
            "--", "--sleep-after", "30",
        ])
        assert await run_command(args, config) == EXIT_FAILURE


class TestReleaseCommands:
    """releases / install 针对本地 HTTP 服务。"""

    @staticmethod
    def make_app() -> web.Application:
        async def listing(request: web.Request) -> web.Response:
            per_page = int(request.query["per_page"])
            tags = ["2025.01.02", "2024.12.31", "2024.12.01"]
            return web.json_response([{"tag_name": t} for t in tags[:per_page]])

        async def download(request: web.Request) -> web.Response:
            return web.Response(body=b"binary:" + request.match_info["tag"].encode())

        application = web.Application()
        application.router.add_get("/repos/yt-dlp/yt-dlp/releases", listing)
        application.router.add_get(
            "/yt-dlp/yt-dlp/releases/download/{tag}/yt-dlp", download
        )
        return application

    @pytest.mark.asyncio
    async def test_releases(self, capsys: pytest.CaptureFixture[str]):
        async with TestServer(self.make_app()) as server:
            base = str(server.make_url("")).rstrip("/")
            config = Config(releases_api_url=base)
            args = parse_args(["releases", "--per-page", "2"])
            assert await run_command(args, config) == EXIT_OK
        assert capsys.readouterr().out.split() == ["2025.01.02", "2024.12.31"]

    @pytest.mark.asyncio
    async def test_install_latest(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]):
        target = tmp_path / "yt-dlp"
        async with TestServer(self.make_app()) as server:
            base = str(server.make_url("")).rstrip("/")
            config = Config(releases_api_url=base, download_url=base)
            args = parse_args(["install", str(target)])
            assert await run_command(args, config) == EXIT_OK
        assert target.read_bytes() == b"binary:2025.01.02"
        assert capsys.readouterr().out.strip() == str(target)

    @pytest.mark.asyncio
    async def test_install_version(self, tmp_path: Path):
        target = tmp_path / "yt-dlp"
        async with TestServer(self.make_app()) as server:
            base = str(server.make_url("")).rstrip("/")
            config = Config(download_url=base)
            args = parse_args(["install", str(target), "--version", "v9"])
            assert await run_command(args, config) == EXIT_OK
        assert target.read_bytes() == b"binary:v9"

    @pytest.mark.asyncio
    async def test_network_failure(
        self, unused_tcp_port: int, capsys: pytest.CaptureFixture[str]
    ):
        config = Config(releases_api_url=f"http://127.0.0.1:{unused_tcp_port}")
        args = parse_args(["releases"])
        assert await run_command(args, config) == EXIT_FAILURE
        assert "Network error" in capsys.readouterr().err


class TestLogging:
    """测试日志配置。"""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        root = logging.getLogger()
        handlers = root.handlers[:]
        level = root.level
        yield
        for handler in root.handlers[:]:
            if handler not in handlers:
                root.removeHandler(handler)
                handler.close()
        root.setLevel(level)
        logging.getLogger("ytdlp_bridge").setLevel(logging.NOTSET)

    def test_default_is_info(self):
        app._configure_logging(Config())
        assert logging.getLogger("ytdlp_bridge").level == logging.INFO

    def test_debug_writes_to_file(self, tmp_path: Path):
        log_file = tmp_path / "debug.log"
        app._configure_logging(Config(log_debug=True, log_file=str(log_file)))
        assert logging.getLogger("ytdlp_bridge").level == logging.DEBUG
