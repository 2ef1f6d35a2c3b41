"""Tests for the default pipeline written by ``secpipe init``."""

from __future__ import annotations

from pathlib import Path

from secpipe.config.defaults import render_default_pipeline, write_default_pipeline
from secpipe.config.loader import load_config
from secpipe.core.models import FailurePolicy


class TestDefaultPipeline:
    def test_default_pipeline_loads_and_validates(self, tmp_path: Path) -> None:
        path = write_default_pipeline(tmp_path, name="webapp")
        assert path == tmp_path / ".secpipe.yml"

        config = load_config(tmp_path)
        assert config.name == "webapp"
        assert config.warnings == []
        assert config.stage_names == [
            "secret-scan",
            "build",
            "dependency-audit",
            "static-analysis",
            "image-build",
            "image-scan",
            "dynamic-scan",
            "publish",
        ]

    def test_scan_stages_tolerate_failure(self, tmp_path: Path) -> None:
        write_default_pipeline(tmp_path, name="webapp")
        config = load_config(tmp_path)
        for name in ("secret-scan", "dependency-audit", "image-scan", "dynamic-scan"):
            stage = config.get_stage(name)
            assert stage is not None
            assert stage.steps[0].failure_policy == FailurePolicy.CONTINUE_ON_ERROR
            assert stage.artifacts

    def test_build_and_publish_are_fail_fast(self, tmp_path: Path) -> None:
        write_default_pipeline(tmp_path, name="webapp")
        config = load_config(tmp_path)
        assert config.get_stage("build").steps[0].failure_policy == FailurePolicy.FAIL_FAST  # type: ignore[union-attr]
        publish = config.get_stage("publish")
        assert publish is not None
        assert publish.steps[0].credentials[0].id == "docker-hub"

    def test_render_uses_project_name(self) -> None:
        assert "name: api-gateway" in render_default_pipeline("api-gateway")
