import pytest
from pydantic import ValidationError

from packshot.core.config import MaskEncoding, PipelineConfig, Settings
from packshot.core.logging import LogContext, add_app_context, job_id_var, stage_var


def test_defaults():
    config = PipelineConfig()

    assert config.canvas_dimensions == (1024, 1024)
    assert config.alpha_threshold == 0
    assert (config.max_width_fraction, config.max_height_fraction) == (0.75, 0.65)
    assert config.bottom_margin_fraction == 0.12
    assert config.mask_encoding == MaskEncoding.ALPHA
    assert not config.inpaint_available


def test_layout_must_fit_canvas():
    with pytest.raises(ValidationError):
        PipelineConfig(max_height_fraction=0.9, bottom_margin_fraction=0.2)


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("CANVAS_SIZE", "512")
    monkeypatch.setenv("MASK_ENCODING", "luminance")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

    config = Settings(_env_file=None).pipeline_config(crop_padding=4)

    assert config.canvas_size == 512
    assert config.mask_encoding == MaskEncoding.LUMINANCE
    assert config.crop_padding == 4
    assert config.inpaint_available


def test_log_context_is_scoped():
    with LogContext(job_id="job-1"):
        with LogContext(stage="reposition"):
            event = add_app_context(None, "info", {"event": "stage_started"})
            assert event["job_id"] == "job-1"
            assert event["stage"] == "reposition"
        assert stage_var.get() is None
    assert job_id_var.get() is None


def test_median_window_must_be_odd():
    with pytest.raises(ValidationError):
        PipelineConfig(median_size=2)
    assert PipelineConfig(median_size=3).median_size == 3
