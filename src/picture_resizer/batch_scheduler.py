"""
並列数を制限したバッチ実行モジュール

固定サイズのスレッドプールでタスクを実行します。
1つのタスクの失敗は他のタスクに影響せず、結果として集計されます。
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from loguru import logger

from .errors import ValidationError, describe_error
from .processing_config import ProcessingConfig


class TaskState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.SUCCEEDED, TaskState.FAILED)


class ProcessingMode(str, Enum):
    """バッチ全体の処理モード"""

    CONVERT = "convert"
    PRESERVE = "preserve"


@dataclass(frozen=True)
class ImageTask:
    """1つの入力ファイルに対する処理単位"""

    source_path: Path
    config: ProcessingConfig
    output_path: Optional[Path] = None
    mode: ProcessingMode = ProcessingMode.PRESERVE


@dataclass(frozen=True)
class TaskOutcome:
    """タスク関数の戻り値"""

    output_path: Path
    source_size: Optional[Tuple[int, int]] = None
    target_size: Optional[Tuple[int, int]] = None


@dataclass(frozen=True)
class ProcessingResult:
    """タスクの処理結果。自動リトライはしない"""

    source_path: Path
    state: TaskState
    output_path: Optional[Path] = None
    error: Optional[BaseException] = None
    source_size: Optional[Tuple[int, int]] = None
    target_size: Optional[Tuple[int, int]] = None
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state is TaskState.SUCCEEDED

    @property
    def error_message(self) -> str:
        if self.error is None:
            return ""
        return describe_error(self.error)


@dataclass
class BatchReport:
    """バッチ処理の集計"""

    total: int
    results: List[ProcessingResult] = field(default_factory=list)
    states: List[TaskState] = field(default_factory=list)
    succeeded_count: int = 0
    failed_count: int = 0
    peak_in_flight: int = 0
    elapsed_seconds: float = 0.0

    def __post_init__(self) -> None:
        if not self.states:
            self.states = [TaskState.PENDING] * self.total

    @property
    def processed_count(self) -> int:
        return self.succeeded_count + self.failed_count

    @property
    def failures(self) -> List[ProcessingResult]:
        return [r for r in self.results if not r.succeeded]

    @property
    def all_terminal(self) -> bool:
        return all(state.is_terminal for state in self.states)


TaskFunction = Callable[[ImageTask], TaskOutcome]
ResultCallback = Callable[[ProcessingResult, BatchReport], None]


class BatchScheduler:
    """同時実行数を worker_count 以下に保つスケジューラ"""

    def __init__(self, worker_count: int, *, on_result: Optional[ResultCallback] = None):
        if isinstance(worker_count, bool) or not isinstance(worker_count, int) or worker_count <= 0:
            raise ValidationError(f"ワーカー数は正の整数で指定してください: {worker_count!r}")
        self._worker_count = worker_count
        self._on_result = on_result
        self._slots = threading.BoundedSemaphore(worker_count)
        self._lock = threading.Lock()
        self._callback_lock = threading.Lock()
        self._in_flight = 0

    @property
    def worker_count(self) -> int:
        return self._worker_count

    def run(self, tasks: Sequence[ImageTask], task_fn: TaskFunction) -> BatchReport:
        """全タスクを実行し、すべて終了してから集計を返す"""
        report = BatchReport(total=len(tasks))
        if not tasks:
            return report

        started_at = time.monotonic()
        logger.debug(f"バッチ開始: タスク数={len(tasks)} ワーカー数={self._worker_count}")

        # with を抜ける時点で全タスクの終了を待つ
        with ThreadPoolExecutor(
            max_workers=self._worker_count,
            thread_name_prefix="picture-resizer",
        ) as executor:
            for index, task in enumerate(tasks):
                executor.submit(self._run_one, index, task, task_fn, report)

        report.elapsed_seconds = time.monotonic() - started_at
        logger.debug(
            f"バッチ終了: 成功={report.succeeded_count} 失敗={report.failed_count} "
            f"最大同時実行={report.peak_in_flight}"
        )
        return report

    def _run_one(self, index: int, task: ImageTask, task_fn: TaskFunction, report: BatchReport) -> None:
        self._slots.acquire()
        try:
            with self._lock:
                self._in_flight += 1
                report.peak_in_flight = max(report.peak_in_flight, self._in_flight)
                report.states[index] = TaskState.RUNNING
            result = self._execute(task, task_fn)
        finally:
            with self._lock:
                self._in_flight -= 1
            self._slots.release()

        with self._lock:
            report.states[index] = result.state
            report.results.append(result)
            if result.succeeded:
                report.succeeded_count += 1
            else:
                report.failed_count += 1
        self._notify(result, report)

    def _execute(self, task: ImageTask, task_fn: TaskFunction) -> ProcessingResult:
        started_at = time.monotonic()
        try:
            outcome = task_fn(task)
        except Exception as e:
            logger.opt(exception=True).debug(f"タスク失敗: {task.source_path}")
            return ProcessingResult(
                source_path=task.source_path,
                state=TaskState.FAILED,
                error=e,
                elapsed_seconds=time.monotonic() - started_at,
            )
        return ProcessingResult(
            source_path=task.source_path,
            state=TaskState.SUCCEEDED,
            output_path=outcome.output_path,
            source_size=outcome.source_size,
            target_size=outcome.target_size,
            elapsed_seconds=time.monotonic() - started_at,
        )

    def _notify(self, result: ProcessingResult, report: BatchReport) -> None:
        if self._on_result is None:
            return
        with self._callback_lock:
            try:
                self._on_result(result, report)
            except Exception as e:
                logger.error(f"結果コールバックでエラーが発生しました: {e}")
