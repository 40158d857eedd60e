"""
一括処理パイプライン

探索 → 分類 → モード決定 → 並列実行 の順につなぎ、集計を返します。

HEIC/HEIF が1つでも含まれる場合はバッチ全体を変換モードで処理し、
含まれない場合は全ファイルを元の形式のままリサイズします。
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from loguru import logger

from . import codec_adapter, file_classifier, resize_engine
from .batch_scheduler import (
    BatchReport,
    BatchScheduler,
    ImageTask,
    ProcessingMode,
    ResultCallback,
    TaskOutcome,
)
from .errors import OutputConflictError, OutputDirectoryError
from .file_classifier import FileSet
from .processing_config import OutputFormat, ProcessingConfig


@dataclass(frozen=True)
class BatchPlan:
    """実行前に確定する処理計画"""

    config: ProcessingConfig
    file_set: FileSet
    mode: ProcessingMode
    tasks: Tuple[ImageTask, ...]
    # 出力先が重複した入力 → 先に出力先を確保した入力
    conflicts: Dict[Path, Path] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.tasks)


@dataclass
class PipelineSummary:
    """パイプライン全体の結果"""

    plan: BatchPlan
    report: BatchReport
    elapsed_seconds: float = 0.0

    @property
    def mode(self) -> ProcessingMode:
        return self.plan.mode

    @property
    def status(self) -> str:
        if self.report.total == 0:
            return "empty"
        if self.report.failed_count == 0:
            return "success"
        if self.report.succeeded_count == 0:
            return "failed"
        return "partial"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "mode": self.mode.value,
            "source": str(self.plan.config.input_dir),
            "dest": str(self.plan.config.output_dir),
            "options": self.plan.config.to_dict(),
            "total_files": self.report.total,
            "heic_files": len(self.plan.file_set.heic_like),
            "regular_files": len(self.plan.file_set.regular),
            "processed_count": self.report.succeeded_count,
            "failed_count": self.report.failed_count,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "failed_files": [
                {"file": str(r.source_path), "error": r.error_message}
                for r in self.report.failures
            ],
        }


def select_mode(file_set: FileSet) -> ProcessingMode:
    """HEIC/HEIF が1つでもあればバッチ全体を変換モードにする"""
    return ProcessingMode.CONVERT if file_set.has_heic else ProcessingMode.PRESERVE


def output_extension_for(output_format: Union[str, OutputFormat]) -> str:
    """変換モードの拡張子。未知の形式は .jpg"""
    value = output_format.value if isinstance(output_format, OutputFormat) else str(output_format).lower()
    if value == "png":
        return ".png"
    return ".jpg"


def output_path_for(
    source_path: Union[str, Path],
    output_dir: Union[str, Path],
    mode: ProcessingMode,
    output_format: Union[str, OutputFormat] = OutputFormat.JPEG,
) -> Path:
    """入力パスから出力パスを決定する"""
    source = Path(source_path)
    if mode is ProcessingMode.CONVERT:
        return Path(output_dir) / f"{source.stem}{output_extension_for(output_format)}"
    # 形式維持モードではファイル名を大文字小文字も含めてそのまま使う
    return Path(output_dir) / source.name


def plan_batch(config: ProcessingConfig) -> BatchPlan:
    """探索・分類・モード決定を行い、タスク列を作る"""
    discovered = file_classifier.discover(
        config.input_dir,
        config.recursive,
        exclude=[config.output_dir],
    )
    file_set = file_classifier.classify(discovered)
    mode = select_mode(file_set)

    if mode is ProcessingMode.CONVERT:
        targets = discovered
    else:
        targets = list(file_set.regular)

    tasks: List[ImageTask] = []
    claimed: Dict[Path, Path] = {}
    conflicts: Dict[Path, Path] = {}
    for source in targets:
        output_path = output_path_for(source, config.output_dir, mode, config.output_format)
        if output_path in claimed:
            conflicts[source] = claimed[output_path]
            logger.warning(f"出力先が重複するためスキップします: {source} → {output_path.name}")
        else:
            claimed[output_path] = source
        tasks.append(ImageTask(source_path=source, config=config, output_path=output_path, mode=mode))

    logger.debug(
        f"処理計画: モード={mode.value} 合計={len(tasks)} "
        f"HEIC={len(file_set.heic_like)} 通常={len(file_set.regular)}"
    )
    return BatchPlan(config=config, file_set=file_set, mode=mode, tasks=tuple(tasks), conflicts=conflicts)


def prepare_output_dir(output_dir: Union[str, Path]) -> Path:
    """出力ディレクトリを作成する（存在していてもよい）"""
    path = Path(output_dir)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputDirectoryError(f"出力ディレクトリを作成できません: {path} ({e})") from e
    if not path.is_dir():
        raise OutputDirectoryError(f"出力先がディレクトリではありません: {path}")
    return path


def process_image(task: ImageTask) -> TaskOutcome:
    """1ファイル分の処理: デコード → リサイズ → エンコード"""
    config = task.config
    output_path = task.output_path or output_path_for(
        task.source_path, config.output_dir, task.mode, config.output_format
    )

    raster = codec_adapter.decode(task.source_path)
    source_size = raster.size
    resized = resize_engine.resize_image(raster, config.max_width, config.max_height)

    if task.mode is ProcessingMode.CONVERT:
        save_format = config.output_format.value
    else:
        save_format = codec_adapter.format_for_path(task.source_path)

    if not config.dry_run:
        codec_adapter.encode(resized, output_path, save_format, config.quality)

    return TaskOutcome(output_path=output_path, source_size=source_size, target_size=resized.size)


def execute_plan(plan: BatchPlan, *, on_result: Optional[ResultCallback] = None) -> PipelineSummary:
    """計画を並列実行する。全タスク終了後に集計を返す"""
    started_at = time.monotonic()
    config = plan.config

    if plan.tasks and not config.dry_run:
        prepare_output_dir(config.output_dir)

    def run_task(task: ImageTask) -> TaskOutcome:
        claimed_by = plan.conflicts.get(task.source_path)
        if claimed_by is not None:
            raise OutputConflictError(task.source_path, task.output_path, claimed_by)
        return process_image(task)

    scheduler = BatchScheduler(config.workers, on_result=on_result)
    report = scheduler.run(plan.tasks, run_task)
    return PipelineSummary(plan=plan, report=report, elapsed_seconds=time.monotonic() - started_at)


def run_pipeline(config: ProcessingConfig, *, on_result: Optional[ResultCallback] = None) -> PipelineSummary:
    """探索から集計までを一括で実行する"""
    plan = plan_batch(config)
    return execute_plan(plan, on_result=on_result)
