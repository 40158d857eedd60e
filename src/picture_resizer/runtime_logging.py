"""
実行ログモジュール

ログは入出力フォルダーではなく、ユーザーごとの状態ディレクトリに保存します。
1回の実行につき run_<ID>.log と run_<ID>_summary.json を作り、
古い実行の分は件数で間引きます。
"""

from __future__ import annotations

import json
import os
import re
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from loguru import logger
from tqdm import tqdm

LOG_DIR_ENV = "PICTURE_RESIZER_LOG_DIR"
DEFAULT_KEEP_RUNS = 50

_RUN_ID_FORMAT = "%Y%m%d_%H%M%S_%f"
_RUN_FILE_PATTERN = re.compile(r"^run_(\d{8}_\d{6}_\d{6})(\.log|_summary\.json)$")

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {thread.name} | {module}:{function}:{line} - {message}"


@dataclass(frozen=True)
class RunLogs:
    """1回の実行に対応するログファイル群"""

    run_id: str
    log_dir: Path

    @property
    def log_path(self) -> Path:
        return self.log_dir / f"run_{self.run_id}.log"

    @property
    def summary_path(self) -> Path:
        return self.log_dir / f"run_{self.run_id}_summary.json"


def resolve_log_dir(
    cli_value: Optional[Union[str, Path]] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
    windows: Optional[bool] = None,
) -> Path:
    """
    ログの保存先を決めます

    優先順位は --log-dir、環境変数 PICTURE_RESIZER_LOG_DIR、OS 既定の順です。
    OS 既定は Windows なら %LOCALAPPDATA%/PictureResizer/logs、
    それ以外は $XDG_STATE_HOME/pictureresizer/logs（未設定なら ~/.local/state 配下）。
    """
    if cli_value:
        return Path(cli_value).expanduser()

    environ = os.environ if env is None else env
    override = environ.get(LOG_DIR_ENV)
    if override:
        return Path(override).expanduser()

    home_dir = home or Path.home()
    if windows is None:
        windows = os.name == "nt"
    if windows:
        base = environ.get("LOCALAPPDATA")
        return (Path(base) if base else home_dir / "AppData" / "Local") / "PictureResizer" / "logs"

    base = environ.get("XDG_STATE_HOME")
    return (Path(base) if base else home_dir / ".local" / "state") / "pictureresizer" / "logs"


def start_run(
    log_dir: Union[str, Path],
    *,
    keep: int = DEFAULT_KEEP_RUNS,
    now: Optional[datetime] = None,
) -> RunLogs:
    """ログディレクトリを用意し、今回の実行を含めて keep 件になるよう古い実行を削除する。"""
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    prune_run_files(directory, keep=max(keep - 1, 0))
    run_id = (now or datetime.now()).strftime(_RUN_ID_FORMAT)
    return RunLogs(run_id=run_id, log_dir=directory)


def prune_run_files(log_dir: Union[str, Path], keep: int = DEFAULT_KEEP_RUNS) -> List[Path]:
    """新しい順に keep 件の実行だけを残し、削除したファイルを返す。"""
    runs: Dict[str, List[Path]] = {}
    for path in Path(log_dir).iterdir():
        match = _RUN_FILE_PATTERN.match(path.name)
        if match and path.is_file():
            runs.setdefault(match.group(1), []).append(path)

    removed: List[Path] = []
    # 実行IDは固定長のタイムスタンプなので文字列順 = 時刻順
    for run_id in sorted(runs, reverse=True)[max(keep, 0):]:
        for path in runs[run_id]:
            try:
                path.unlink()
            except OSError as e:
                logger.warning(f"古いログを削除できませんでした: {path} ({e})")
            else:
                removed.append(path)
    if removed:
        logger.debug(f"古いログを {len(removed)} 件削除しました")
    return sorted(removed)


def write_run_summary(summary_path: Path, payload: Dict[str, Any]) -> None:
    """実行サマリーを JSON で保存する（途中で落ちても壊れたファイルを残さない）"""
    tmp_path = summary_path.with_name(f"{summary_path.name}.tmp")
    tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    os.replace(str(tmp_path), str(summary_path))


def setup_logging(
    console_level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    file_level: str = "DEBUG",
) -> None:
    """ロギングの設定を行います。コンソール出力は進捗バーを崩さないよう tqdm 経由にする。"""
    logger.remove()  # デフォルト設定を削除
    logger.add(
        lambda message: tqdm.write(message, end="", file=sys.stderr),
        format=CONSOLE_FORMAT,
        colorize=True,
        level=console_level,
    )
    if log_file is not None:
        logger.add(
            str(log_file),
            format=FILE_FORMAT,
            level=file_level,
            encoding="utf-8",
        )
