"""Tests for the FastAPI service mode."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from envscan.errors import PreconditionError
from envscan.models import PackageOutcome, PackageStatus
from envscan.service import create_app


class _StubDriver:
    def __init__(self) -> None:
        self.calls: list[dict[str, object]] = []

    async def process_package(self, name: str, *, dry_run: bool = False) -> PackageOutcome:
        self.calls.append({"name": name, "dry_run": dry_run})
        return PackageOutcome(
            name="plugin-sample",
            status=PackageStatus.UPDATED,
            discovered=["API_KEY"],
            old_version="1.0.0",
            new_version="1.0.1",
            reason="dry-run" if dry_run else None,
        )


@pytest.fixture
def driver() -> _StubDriver:
    return _StubDriver()


@pytest.fixture
def client(driver: _StubDriver) -> TestClient:
    return TestClient(create_app(lambda: driver))


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_analyze_endpoint(client: TestClient, driver: _StubDriver) -> None:
    response = client.post("/analyze", json={"path": "/work/plugin-sample", "dry_run": True})

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "updated"
    assert data["discovered"] == ["API_KEY"]
    assert data["new_version"] == "1.0.1"
    assert data["reason"] == "dry-run"
    assert data["error"] is None
    assert driver.calls == [{"name": "/work/plugin-sample", "dry_run": True}]


def test_analyze_requires_path(client: TestClient) -> None:
    response = client.post("/analyze", json={})
    assert response.status_code == 422


def test_analyze_rejects_paths_outside_root(tmp_path, driver: _StubDriver) -> None:
    root = tmp_path / "packages"
    (root / "plugin-sample").mkdir(parents=True)
    client = TestClient(create_app(lambda: driver, root=root))

    inside = client.post("/analyze", json={"path": str(root / "plugin-sample")})
    outside = client.post("/analyze", json={"path": str(tmp_path / "elsewhere")})
    escaped = client.post("/analyze", json={"path": str(root / ".." / "elsewhere")})

    assert inside.status_code == 200
    assert outside.status_code == 403
    assert escaped.status_code == 403
    assert driver.calls == [{"name": str(root / "plugin-sample"), "dry_run": False}]

def test_missing_credentials_map_to_bad_request() -> None:
    def factory():
        raise PreconditionError("OPENAI_API_KEY environment variable is not set")

    client = TestClient(create_app(factory))
    response = client.post("/analyze", json={"path": "."})

    assert response.status_code == 400
    assert "OPENAI_API_KEY" in response.json()["detail"]
