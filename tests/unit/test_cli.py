from pathlib import Path

import pytest

from packshot import cli
from packshot.engines.raster import RasterImage
from packshot.pipeline.schemas import PipelineResult, ResultStatus


@pytest.fixture(autouse=True)
def offline_settings(monkeypatch, tmp_path):
    monkeypatch.setattr(cli.settings, "CANVAS_SIZE", 64)
    monkeypatch.setattr(cli.settings, "WORKING_DIR", str(tmp_path / "work"))
    monkeypatch.setattr(cli.settings, "REMOVEBG_API_KEY", None)
    monkeypatch.setattr(cli.settings, "OPENAI_API_KEY", None)
    monkeypatch.setattr(cli.settings, "RETRY_BASE_DELAY_SECONDS", 0.0)
    monkeypatch.setattr(cli.settings, "PERSIST_WORKING_FILES", False)


def test_single_file(tmp_path, photo_bytes):
    source = tmp_path / "shoe.jpg"
    source.write_bytes(photo_bytes)
    out = tmp_path / "out"

    code = cli.main([str(source), "--output-dir", str(out), "--no-inpaint", "--log-format", "console"])

    assert code == 0
    result = RasterImage.decode((out / "shoe_result.png").read_bytes())
    assert result.size == (64, 64)
    assert not result.has_alpha


def test_directory_with_a_corrupt_file(tmp_path, photo_bytes):
    inputs = tmp_path / "in"
    inputs.mkdir()
    (inputs / "good.jpg").write_bytes(photo_bytes)
    (inputs / "broken.png").write_bytes(b"not a png")
    (inputs / "notes.txt").write_text("ignored")
    out = tmp_path / "out"

    code = cli.main([str(inputs), "--output-dir", str(out), "--no-inpaint"])

    assert code == 1
    assert sorted(p.name for p in out.iterdir()) == ["good_result.png"]


def test_keep_working_files(tmp_path, photo_bytes):
    source = tmp_path / "shoe.jpg"
    source.write_bytes(photo_bytes)

    cli.main([str(source), "--output-dir", str(tmp_path / "out"), "--no-inpaint", "--keep-working-files"])

    names = {p.name.rsplit("_", 1)[-1] for p in (tmp_path / "work").iterdir()}
    assert names == {"input.png", "bg.png", "repositioned.png", "result.png"}


def test_working_files_follow_settings_by_default(tmp_path, photo_bytes):
    source = tmp_path / "shoe.jpg"
    source.write_bytes(photo_bytes)

    code = cli.main([str(source), "--output-dir", str(tmp_path / "out"), "--no-inpaint"])

    assert code == 0
    assert (tmp_path / "out" / "shoe_result.png").exists()
    assert not (tmp_path / "work").exists()


def test_no_keep_working_files_overrides_settings(monkeypatch, tmp_path, photo_bytes):
    monkeypatch.setattr(cli.settings, "PERSIST_WORKING_FILES", True)
    source = tmp_path / "shoe.jpg"
    source.write_bytes(photo_bytes)

    cli.main([str(source), "--output-dir", str(tmp_path / "out"), "--no-inpaint", "--no-keep-working-files"])

    assert not (tmp_path / "work").exists()


def test_missing_input_exits(tmp_path):
    with pytest.raises(SystemExit) as exc_info:
        cli.main([str(tmp_path / "nope.jpg")])
    assert exc_info.value.code == 2


def test_partial_result_is_written_with_its_own_suffix(tmp_path):
    image = RasterImage.blank(8, 8, (0, 0, 0, 255))
    result = PipelineResult(
        job_id="abc",
        status=ResultStatus.PARTIAL,
        image=image,
        png_bytes=image.encode_png(),
        final_stage="reposition",
        records=[],
        warnings=[],
    )

    target = cli.write_output(result, Path("shoe.jpg"), tmp_path)

    assert target == tmp_path / "shoe_partial.png"
    assert target.read_bytes() == result.png_bytes
