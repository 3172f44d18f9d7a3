"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from promoter.pipeline.config import ENV_VARS, PipelineConfig
from tests.fixtures.fakes import FakeClock


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's AWS/PROMOTE_* environment out of test runs."""
    for env_var in ENV_VARS.values():
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.delenv("PROMOTE_CONFIG", raising=False)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """A small build context with files that must and must not be packaged."""
    root = tmp_path / "docker"
    (root / "app").mkdir(parents=True)
    (root / "Dockerfile").write_text("FROM python:3.12-slim\n")
    (root / "app" / "server.py").write_text("print('ocr')\n")
    (root / ".git").mkdir()
    (root / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    (root / ".gitignore").write_text("*.pyc\n")
    (root / ".DS_Store").write_bytes(b"\x00")
    return root


@pytest.fixture
def config(source_dir: Path) -> PipelineConfig:
    return PipelineConfig(
        health_url="http://ocr-lb.example.com",
        source_dir=str(source_dir),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
