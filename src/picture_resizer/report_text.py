"""
表示用テキストの組み立て

処理計画・ファイルごとの結果行・最終サマリーの文字列を作ります。
出力はしません（呼び出し側がロガーや tqdm で表示します）。
"""

from __future__ import annotations

from typing import List

from .batch_scheduler import ProcessingMode, ProcessingResult
from .pipeline import BatchPlan, PipelineSummary


def build_plan_text(plan: BatchPlan) -> str:
    """処理対象とモードを知らせる行"""
    file_set = plan.file_set
    head = (
        f"{file_set.total} 件の画像が見つかりました "
        f"(HEIC {len(file_set.heic_like)} 件 / 通常 {len(file_set.regular)} 件)"
    )
    if plan.mode is ProcessingMode.CONVERT:
        mode_text = f"HEIC を含むため、すべての画像を {plan.config.output_format.value.upper()} に変換します"
    else:
        mode_text = "HEIC がないため、元の形式のままリサイズします"
    if plan.config.dry_run:
        mode_text = f"【ドライラン】{mode_text}"
    return f"{head}\n{mode_text}"


def build_result_line(result: ProcessingResult) -> str:
    """1ファイル分の成功・失敗行"""
    name = result.source_path.name
    if not result.succeeded:
        return f"✗ {name}: {result.error_message}"

    output_name = result.output_path.name if result.output_path else name
    if result.source_size and result.target_size and result.source_size != result.target_size:
        sw, sh = result.source_size
        tw, th = result.target_size
        return f"✓ {name} → {output_name} ({sw}x{sh} → {tw}x{th})"
    return f"✓ {name} → {output_name}"


def build_summary_text(summary: PipelineSummary) -> str:
    """最終サマリー"""
    report = summary.report
    title = "【ドライラン結果】" if summary.plan.config.dry_run else "【処理結果】"
    lines: List[str] = [
        "-" * 60,
        title,
        f"モード: {'変換' if summary.mode is ProcessingMode.CONVERT else '形式維持'}",
        f"成功: {report.succeeded_count}ファイル",
        f"失敗: {report.failed_count}ファイル",
        f"処理時間: {summary.elapsed_seconds:.2f}秒",
    ]
    for failure in report.failures:
        lines.append(f"  - {failure.source_path}: {failure.error_message}")
    return "\n".join(lines)
