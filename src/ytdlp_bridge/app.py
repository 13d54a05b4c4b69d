"""ytdlp-bridge 命令行入口。

子命令:
    releases [--page N] [--per-page N]   列出发布版本
    install PATH [--version TAG]         安装 yt-dlp（默认最新版）
    info QUERY                           打印首个搜索结果的元数据 JSON
    run TARGET [--live] [-- EXTRA...]    运行 yt-dlp 直到结束（--live 边运行边输出）
    stream TARGET [-o FILE] [-- EXTRA...] 把负载流式写入文件或 stdout

退出码: 0 成功, 1 yt-dlp/握手/安装/网络错误, 2 用法错误
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from typing import BinaryIO

from . import __version__
from .config import Config, get_config
from .errors import EmptyTargetError, InvalidBinaryPathError, YtDlpBridgeError
from .invoker import YtDlp
from .releases import BinaryInstaller, ReleaseClient
from .runtime import MediaStream

__all__ = ["build_parser", "main", "parse_args", "run_command"]

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    """构建参数解析器。"""
    parser = argparse.ArgumentParser(
        prog="ytdlp-bridge",
        description="Run, stream and install yt-dlp",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--binary",
        default=None,
        help="yt-dlp executable (default: YTB_BINARY_PATH or 'yt-dlp')",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    releases = sub.add_parser("releases", help="List published yt-dlp releases")
    releases.add_argument("--page", type=int, default=1)
    releases.add_argument("--per-page", type=int, default=10)

    install = sub.add_parser("install", help="Install yt-dlp to PATH")
    install.add_argument("path")
    install.add_argument("--version", dest="tag", default=None, help="Release tag (default: latest)")

    info = sub.add_parser("info", help="Print metadata of the first search result")
    info.add_argument("query")

    run = sub.add_parser("run", help="Run yt-dlp on TARGET until it exits")
    run.add_argument("target")
    run.add_argument("--live", action="store_true", help="Print yt-dlp output while it runs")
    run.set_defaults(extra=[])

    stream = sub.add_parser("stream", help="Stream the payload of TARGET")
    stream.add_argument("target")
    stream.add_argument("-o", "--output", default=None, help="Output file (default: stdout)")
    stream.add_argument("--handshake-timeout", type=float, default=None)
    stream.set_defaults(extra=[])

    return parser


PASSTHROUGH_COMMANDS = ("run", "stream")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """解析命令行。

    "--" 之后的参数原样传给 yt-dlp（只对 run / stream 有效）。
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    passthrough: list[str] = []
    if "--" in argv:
        split = argv.index("--")
        argv, passthrough = argv[:split], argv[split + 1:]

    parser = build_parser()
    args = parser.parse_args(argv)
    if passthrough:
        if args.command not in PASSTHROUGH_COMMANDS:
            parser.error(f"{args.command} does not accept extra yt-dlp arguments")
        args.extra = passthrough
    return args


async def _cmd_releases(args: argparse.Namespace, config: Config) -> int:
    async with ReleaseClient(config) as client:
        releases = await client.list_releases(page=args.page, per_page=args.per_page)
    for release in releases:
        print(release.tag)
    return EXIT_OK


async def _cmd_install(args: argparse.Namespace, config: Config) -> int:
    def progress(written: int, total: int | None) -> None:
        if total:
            logger.debug(f"Downloaded {written}/{total} bytes")

    async with BinaryInstaller(config) as installer:
        if args.tag:
            handle = await installer.install_version(args.path, args.tag, progress)
        else:
            handle = await installer.install_latest(args.path, progress)
    print(handle)
    return EXIT_OK


async def _cmd_info(args: argparse.Namespace, config: Config) -> int:
    ytdlp = YtDlp(args.binary, config=config)
    metadata = await ytdlp.fetch_metadata(args.query)
    print(metadata.model_dump_json())
    return EXIT_OK


async def _cmd_run(args: argparse.Namespace, config: Config) -> int:
    ytdlp = YtDlp(args.binary, config=config)
    if not args.live:
        await ytdlp.execute(args.target, *args.extra)
        return EXIT_OK

    # --live: 合并后的 stdout + stderr 边运行边输出
    async with await ytdlp.execute_stream(args.target, *args.extra) as stream:
        await _copy_stream(stream, sys.stdout.buffer)
        sys.stdout.buffer.flush()
        returncode = await stream.wait()

    if returncode != 0:
        print(f"yt-dlp exited with status {returncode}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_OK


async def _cmd_stream(args: argparse.Namespace, config: Config) -> int:
    ytdlp = YtDlp(args.binary, config=config)

    def on_stderr(line: str) -> None:
        logger.debug(f"yt-dlp: {line}")

    launch = await ytdlp.stream(
        args.target,
        *args.extra,
        on_stderr=on_stderr,
        handshake_timeout=args.handshake_timeout,
    )
    async with launch.stream as stream:
        if launch.error is not None:
            print(f"yt-dlp error: {launch.error}", file=sys.stderr)
            return EXIT_FAILURE

        if args.output:
            with open(args.output, "wb") as sink:
                await _copy_stream(stream, sink)
        else:
            await _copy_stream(stream, sys.stdout.buffer)
            sys.stdout.buffer.flush()

        returncode = await stream.wait()

    if returncode != 0:
        print(f"yt-dlp exited with status {returncode}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_OK


async def _copy_stream(stream: MediaStream, sink: BinaryIO) -> None:
    async for chunk in stream:
        sink.write(chunk)


_COMMANDS = {
    "releases": _cmd_releases,
    "install": _cmd_install,
    "info": _cmd_info,
    "run": _cmd_run,
    "stream": _cmd_stream,
}


async def run_command(args: argparse.Namespace, config: Config | None = None) -> int:
    """执行子命令并返回退出码。"""
    config = config or get_config()
    if args.binary is None:
        args.binary = config.binary_path

    try:
        return await _COMMANDS[args.command](args, config)
    except (EmptyTargetError, InvalidBinaryPathError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except YtDlpBridgeError as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILURE


def _configure_logging(config: Config) -> None:
    """配置日志输出。"""
    log_handlers: list[logging.Handler] = []
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    if config.log_debug and config.log_file:
        # LOG_DEBUG 模式：输出到临时文件
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        # 默认模式：输出到 stderr（stdout 留给负载）
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    # 配置 root logger（第三方库）为 WARNING，减少噪音
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    # 只对 ytdlp_bridge 命名空间启用详细日志
    logging.getLogger("ytdlp_bridge").setLevel(log_level)


def main(argv: Sequence[str] | None = None) -> None:
    """主入口点。"""
    config = get_config()
    _configure_logging(config)

    args = parse_args(argv)
    sys.exit(asyncio.run(run_command(args, config)))


if __name__ == "__main__":
    main()
