"""Pytest configuration and fixtures for varistore tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from varistore.config import VariantSettings
from varistore.models import Artifact
from varistore.storage.filesystem_store import FilesystemArtifactStore
from varistore.storage.memory_store import InMemoryArtifactStore

_VARISTORE_ENV_VARS = (
    "VARISTORE_STORE_DIR",
    "VARISTORE_CACHE_DIR",
    "VARISTORE_VERSION_SEPARATOR",
    "VARISTORE_BASE_URL",
    "VARISTORE_ENABLE_PROCESSING",
    "VARISTORE_DELETE_CACHE_AFTER_STORE",
    "VARISTORE_REDECLARE_POLICY",
    "VARISTORE_STORE_BASE_DIR",
    "VARISTORE_OTEL_ENABLED",
    "VARISTORE_OTEL_TEST_CAPTURE",
    "VARISTORE_REQUIRE_OTEL",
    "VARISTORE_OTEL_SERVICE_NAME",
    "VARISTORE_OTEL_EXPORTER",
    "VARISTORE_OTEL_EXPORTER_OTLP_ENDPOINT",
    "VARISTORE_OTEL_EXPORTER_OTLP_PROTOCOL",
    "VARISTORE_OTEL_RESOURCE_ATTRS",
)


@pytest.fixture(autouse=True)
def clean_varistore_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test without VARISTORE_* overrides from the outer environment."""
    for key in _VARISTORE_ENV_VARS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def settings() -> VariantSettings:
    """Return default settings."""
    return VariantSettings()


@pytest.fixture
def memory_store() -> InMemoryArtifactStore:
    """Return an empty in-memory artifact store."""
    return InMemoryArtifactStore()


@pytest.fixture
def fs_store(tmp_path: Path) -> FilesystemArtifactStore:
    """Return a filesystem artifact store rooted in a temp directory."""
    return FilesystemArtifactStore(base_dir=tmp_path / "artifacts")


@pytest.fixture
def photo() -> Artifact:
    """Return a small uploaded artifact."""
    return Artifact(data=b"raw-image", filename="photo.png", content_type="image/png")


class StepRecorder:
    """Builds processing steps that record their inputs and tag their outputs."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, bytes]] = []

    def step(self, label: str) -> Callable[[Artifact], Artifact]:
        def _step(artifact: Artifact) -> Artifact:
            self.calls.append((label, artifact.data))
            return artifact.with_data(artifact.data + f"|{label}".encode())

        _step.__qualname__ = label
        return _step

    @property
    def labels(self) -> list[str]:
        return [label for label, _ in self.calls]

    def input_of(self, label: str) -> bytes:
        for call_label, data in self.calls:
            if call_label == label:
                return data
        raise AssertionError(f"step {label} was never called")


@pytest.fixture
def recorder() -> StepRecorder:
    """Return a fresh StepRecorder."""
    return StepRecorder()
