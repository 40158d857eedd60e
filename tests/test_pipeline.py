from __future__ import annotations

from pathlib import Path

from PIL import Image

from picture_resizer.batch_scheduler import ProcessingMode
from picture_resizer.errors import DecodeError, OutputConflictError
from picture_resizer.file_classifier import classify
from picture_resizer.pipeline import (
    output_extension_for,
    output_path_for,
    plan_batch,
    run_pipeline,
    select_mode,
)
from picture_resizer.processing_config import OutputFormat, ProcessingConfig


def _config(input_dir: Path, output_dir: Path, **kwargs) -> ProcessingConfig:
    return ProcessingConfig(input_dir=input_dir, output_dir=output_dir, **kwargs)


def test_output_path_conversion_mode() -> None:
    result = output_path_for(Path("/x/y/image.jpeg"), Path("/out"), ProcessingMode.CONVERT, OutputFormat.PNG)
    assert result == Path("/out/image.png")


def test_output_path_preserving_mode_keeps_name_verbatim() -> None:
    result = output_path_for(Path("/x/y/image.PNG"), Path("/out"), ProcessingMode.PRESERVE, OutputFormat.JPEG)
    assert result == Path("/out/image.PNG")


def test_output_extension_defaults_to_jpg() -> None:
    assert output_extension_for(OutputFormat.JPEG) == ".jpg"
    assert output_extension_for(OutputFormat.PNG) == ".png"
    assert output_extension_for("png") == ".png"
    assert output_extension_for("gif") == ".jpg"


def test_select_mode_is_global() -> None:
    assert select_mode(classify([Path("a.jpg"), Path("b.heic")])) is ProcessingMode.CONVERT
    assert select_mode(classify([Path("a.jpg"), Path("b.png")])) is ProcessingMode.PRESERVE
    assert select_mode(classify([])) is ProcessingMode.PRESERVE


def test_one_heic_converts_the_whole_batch(tmp_path: Path, make_image) -> None:
    src = tmp_path / "in"
    make_image(src / "photo.heic", size=(80, 60), image_format="PNG")
    for i in range(9):
        make_image(src / f"img_{i}.jpg", size=(80, 60))

    plan = plan_batch(_config(src, tmp_path / "out", output_format="png"))

    assert plan.mode is ProcessingMode.CONVERT
    assert plan.total == 10
    assert all(task.mode is ProcessingMode.CONVERT for task in plan.tasks)
    assert {task.output_path.suffix for task in plan.tasks} == {".png"}


def test_no_heic_preserves_every_file(tmp_path: Path, make_image) -> None:
    src = tmp_path / "in"
    for i in range(5):
        make_image(src / f"img_{i}.jpg", size=(80, 60))

    plan = plan_batch(_config(src, tmp_path / "out", output_format="png"))

    assert plan.mode is ProcessingMode.PRESERVE
    assert plan.total == 5
    assert {task.output_path.name for task in plan.tasks} == {f"img_{i}.jpg" for i in range(5)}


def test_run_pipeline_conversion_mode_writes_target_format(sample_tree: Path, tmp_path: Path) -> None:
    out = tmp_path / "out"
    summary = run_pipeline(_config(sample_tree, out, max_width=100, max_height=100, workers=2))

    assert summary.mode is ProcessingMode.CONVERT
    assert summary.report.succeeded_count == 3
    assert summary.report.failed_count == 0
    assert sorted(p.name for p in out.iterdir()) == ["a.jpg", "b.jpg", "c.jpg"]

    with Image.open(out / "a.jpg") as img:
        assert img.format == "JPEG"
        assert img.size == (100, 50)
    with Image.open(out / "b.jpg") as img:
        assert img.format == "JPEG"
        assert img.size == (100, 100)
    with Image.open(out / "c.jpg") as img:
        # 枠内の画像は拡大しない
        assert img.size == (100, 50)


def test_run_pipeline_preserving_mode_keeps_formats(tmp_path: Path, make_image) -> None:
    src = tmp_path / "in"
    make_image(src / "photo.JPG", size=(300, 150))
    make_image(src / "icon.png", size=(40, 40), mode="RGBA")
    make_image(src / "scan.bmp", size=(500, 250))
    make_image(src / "page.tif", size=(120, 240))
    out = tmp_path / "out"

    summary = run_pipeline(_config(src, out, max_width=100, max_height=100, output_format="png"))

    assert summary.mode is ProcessingMode.PRESERVE
    assert summary.report.succeeded_count == 4
    expected = {"photo.JPG": "JPEG", "icon.png": "PNG", "scan.bmp": "BMP", "page.tif": "TIFF"}
    for name, image_format in expected.items():
        with Image.open(out / name) as img:
            assert img.format == image_format
            assert img.width <= 100 and img.height <= 100
    with Image.open(out / "icon.png") as img:
        assert img.mode == "RGBA"


def test_corrupt_file_is_isolated(tmp_path: Path, make_image) -> None:
    src = tmp_path / "in"
    for i in range(4):
        make_image(src / f"ok_{i}.png", size=(30, 30))
    (src / "broken.jpg").write_bytes(b"this is not a jpeg")
    out = tmp_path / "out"

    summary = run_pipeline(_config(src, out, workers=2))

    assert summary.report.succeeded_count == 4
    assert summary.report.failed_count == 1
    assert summary.status == "partial"
    [failure] = summary.report.failures
    assert failure.source_path.name == "broken.jpg"
    assert isinstance(failure.error, DecodeError)
    assert not (out / "broken.jpg").exists()
    # 一時ファイルが残らない
    assert sorted(p.name for p in out.iterdir()) == [f"ok_{i}.png" for i in range(4)]


def test_colliding_outputs_fail_later_input(tmp_path: Path, make_image) -> None:
    src = tmp_path / "in"
    make_image(src / "a.heic", size=(20, 20), image_format="PNG")
    make_image(src / "a.jpg", size=(20, 20))
    out = tmp_path / "out"

    summary = run_pipeline(_config(src, out))

    assert summary.report.succeeded_count == 1
    [failure] = summary.report.failures
    assert isinstance(failure.error, OutputConflictError)
    assert failure.error.output_path == out / "a.jpg"
    assert (out / "a.jpg").exists()


def test_output_dir_inside_input_is_not_rediscovered(tmp_path: Path, make_image) -> None:
    src = tmp_path / "in"
    make_image(src / "a.jpg", size=(20, 20))
    out = src / "output"

    first = run_pipeline(_config(src, out, recursive=True))
    second = run_pipeline(_config(src, out, recursive=True))

    assert first.report.total == 1
    assert second.report.total == 1


def test_dry_run_writes_nothing(sample_tree: Path, tmp_path: Path) -> None:
    out = tmp_path / "out"
    summary = run_pipeline(_config(sample_tree, out, max_width=50, max_height=50, dry_run=True))

    assert summary.report.succeeded_count == 3
    assert not out.exists()
    sizes = {r.source_path.name: r.target_size for r in summary.report.results}
    assert sizes["a.jpg"] == (50, 25)


def test_empty_input_creates_nothing(tmp_path: Path) -> None:
    src = tmp_path / "in"
    src.mkdir()
    out = tmp_path / "out"

    summary = run_pipeline(_config(src, out))

    assert summary.status == "empty"
    assert not out.exists()


def test_summary_to_dict_shape(sample_tree: Path, tmp_path: Path) -> None:
    (sample_tree / "zz_broken.png").write_bytes(b"garbage")
    summary = run_pipeline(_config(sample_tree, tmp_path / "out"))
    payload = summary.to_dict()

    assert payload["mode"] == "convert"
    assert payload["total_files"] == 4
    assert payload["heic_files"] == 1
    assert payload["processed_count"] == 3
    assert payload["failed_count"] == 1
    assert payload["failed_files"][0]["file"].endswith("zz_broken.png")
    assert payload["options"]["format"] == "jpeg"


def test_preserving_mode_keeps_sixteen_bit_png(tmp_path: Path) -> None:
    src = tmp_path / "in"
    src.mkdir()
    Image.new("I;16", (40, 20), 1000).save(src / "deep.png", format="PNG")
    out = tmp_path / "out"

    summary = run_pipeline(_config(src, out))

    assert summary.report.succeeded_count == 1
    with Image.open(out / "deep.png") as img:
        assert img.format == "PNG"
        assert img.mode in ("I", "I;16")
        assert img.getpixel((0, 0)) == 1000
