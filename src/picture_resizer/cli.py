#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
画像一括変換・リサイズのコマンドラインインターフェース

指定ディレクトリの画像を探索し、最大サイズに収まるよう縦横比を保ってリサイズします。
HEIC/HEIF が含まれる場合はすべて指定形式へ変換し、含まれない場合は元の形式を維持します。
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

from loguru import logger
from tqdm import tqdm

from . import __version__, report_text, runtime_logging
from .batch_scheduler import BatchReport, ProcessingResult
from .errors import DiscoveryError, OutputDirectoryError, ValidationError
from .pipeline import execute_plan, plan_batch
from .processing_config import (
    DEFAULT_FORMAT,
    DEFAULT_INPUT_DIR,
    DEFAULT_MAX_HEIGHT,
    DEFAULT_MAX_WIDTH,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_QUALITY,
    DEFAULT_WORKERS,
    ProcessingConfig,
)

EXIT_OK = 0
EXIT_FAILURE = 1


class _ArgumentParser(argparse.ArgumentParser):
    """引数エラーも検証エラーと同じ終了コードにする"""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_FAILURE, f"{self.prog}: エラー: {message}\n")


def _build_arg_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI use."""
    p = _ArgumentParser(
        prog="picture-resizer",
        description="画像を一括で形式変換・リサイズするコマンドラインツール",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="command", parser_class=_ArgumentParser)
    sub.required = True

    proc = sub.add_parser(
        "process",
        help="画像の一括処理を開始する",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    proc.add_argument("-i", "--input", default=DEFAULT_INPUT_DIR, help="入力フォルダー")
    proc.add_argument("-o", "--output", default=DEFAULT_OUTPUT_DIR, help="出力フォルダー")
    proc.add_argument("-f", "--format", default=DEFAULT_FORMAT, help="変換時の出力形式 (jpg, png)")
    proc.add_argument("-W", "--width", type=int, default=DEFAULT_MAX_WIDTH, help="最大幅(px)")
    proc.add_argument("-H", "--height", type=int, default=DEFAULT_MAX_HEIGHT, help="最大高さ(px)")
    proc.add_argument("-q", "--quality", type=int, default=DEFAULT_QUALITY, help="出力品質 (1-100)")
    proc.add_argument("-r", "--recursive", action="store_true", help="サブフォルダーも処理する")
    proc.add_argument("-w", "--workers", type=int, default=DEFAULT_WORKERS, help="同時に処理するファイル数")
    proc.add_argument("--dry-run", action="store_true", help="ファイルを出力せずに処理をシミュレート")
    proc.add_argument("--json", action="store_true", help="処理結果のサマリーをJSONで標準出力に出す")
    proc.add_argument("--log-dir", default=None, help="ログの保存先 (既定: OS標準の状態ディレクトリ)")
    proc.add_argument("--verbose", "-v", action="count", default=0, help="詳細ログを増やす (重ね掛け可)")
    return p


def _console_level(verbose: int) -> str:
    if verbose >= 2:
        return "TRACE"
    if verbose == 1:
        return "DEBUG"
    return "INFO"


def _config_from_args(args: argparse.Namespace) -> ProcessingConfig:
    return ProcessingConfig(
        output_format=args.format,
        max_width=args.width,
        max_height=args.height,
        quality=args.quality,
        output_dir=Path(args.output),
        workers=args.workers,
        input_dir=Path(args.input),
        recursive=args.recursive,
        dry_run=args.dry_run,
    )


def _open_run_logs(args: argparse.Namespace, console_level: str) -> Optional[runtime_logging.RunLogs]:
    """実行ログのファイルシンクを追加する。作れなければコンソールのみで続行する"""
    try:
        run_logs = runtime_logging.start_run(runtime_logging.resolve_log_dir(args.log_dir))
        runtime_logging.setup_logging(console_level=console_level, log_file=run_logs.log_path)
    except OSError as e:
        logger.warning(f"ログファイルを作成できないため、コンソールのみに出力します: {e}")
        return None
    logger.debug(f"ログファイル: {run_logs.log_path}")
    return run_logs


def run_process(args: argparse.Namespace) -> int:
    """process サブコマンドの本体"""
    console_level = _console_level(args.verbose)
    runtime_logging.setup_logging(console_level=console_level)

    try:
        config = _config_from_args(args)
    except ValidationError as e:
        logger.error(f"入力値の検証に失敗しました: {e}")
        return EXIT_FAILURE

    run_logs = _open_run_logs(args, console_level)
    logger.debug(f"Pythonバージョン: {sys.version}")
    logger.debug(f"引数: {args}")

    try:
        plan = plan_batch(config)
    except DiscoveryError as e:
        logger.error(f"画像ファイルの探索に失敗しました: {e}")
        return EXIT_FAILURE

    if plan.total == 0:
        logger.warning("画像ファイルが見つかりませんでした")
        return EXIT_OK

    logger.info(report_text.build_plan_text(plan))

    with tqdm(total=plan.total, desc="画像処理中", unit="files", disable=args.json) as progress:

        def on_result(result: ProcessingResult, _report: BatchReport) -> None:
            if result.succeeded:
                logger.info(report_text.build_result_line(result))
            else:
                logger.error(report_text.build_result_line(result))
            progress.update(1)

        try:
            summary = execute_plan(plan, on_result=on_result)
        except OutputDirectoryError as e:
            logger.error(str(e))
            return EXIT_FAILURE

    payload = summary.to_dict()
    if run_logs is not None:
        try:
            runtime_logging.write_run_summary(run_logs.summary_path, payload)
        except OSError as e:
            logger.warning(f"サマリーの保存に失敗しました: {e}")

    if args.json:
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        tqdm.write(report_text.build_summary_text(summary))

    if summary.report.failed_count:
        logger.warning(f"{summary.report.failed_count} 件の画像が失敗しました")
    else:
        logger.success("すべての画像を処理しました！")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """CLI のエントリーポイント。終了コードを返す"""
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    if args.command == "process":
        return run_process(args)
    parser.print_help()
    return EXIT_FAILURE


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
