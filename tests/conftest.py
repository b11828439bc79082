"""Shared fixtures for fullstack_deploy tests."""

from __future__ import annotations

from pathlib import Path

import pytest

REGION = "us-east-1"


@pytest.fixture(autouse=True)
def aws_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Fake credentials so boto3 and moto never reach a real account."""
    monkeypatch.setenv("AWS_REGION", REGION)
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")


@pytest.fixture
def client_dist(tmp_path: Path) -> Path:
    """A small built client tree under tmp_path/client/dist."""
    root = tmp_path / "client" / "dist"
    (root / "js").mkdir(parents=True)
    (root / "css").mkdir()
    (root / "static").mkdir()
    (root / "index.html").write_text("<html></html>", encoding="utf-8")
    (root / "js" / "app.js").write_text("console.log('app');", encoding="utf-8")
    (root / "css" / "style.css").write_text("body {}", encoding="utf-8")
    (root / "static" / "special.js").write_text("// special", encoding="utf-8")
    return root
