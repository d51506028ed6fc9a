"""FastAPI application entrypoint for envscan service mode."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import load_config, load_credentials
from ..errors import EnvScanError
from ..orchestrator import LocalWorkspaceProvider, SynthesisDriver, build_driver


class AnalyzeRequest(BaseModel):
    path: str
    dry_run: bool = False


class AnalyzeResponse(BaseModel):
    name: str
    status: str
    discovered: List[str] = []
    old_version: Optional[str] = None
    new_version: Optional[str] = None
    published: bool = False
    failures: int = 0
    reason: Optional[str] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: str


def _default_driver() -> SynthesisDriver:
    config = load_config(Path.cwd())
    credentials = load_credentials(require_github=False)
    return build_driver(
        config,
        LocalWorkspaceProvider(config.github.manifest_path),
        api_key=credentials.openai_api_key,
    )


def create_app(
    driver_factory: Callable[[], SynthesisDriver] = _default_driver,
    *,
    root: Path | None = None,
) -> FastAPI:
    """Create the FastAPI application exposing local package analysis.

    The service updates manifests in place, so it is meant for local use. When ``root``
    is given, only package paths inside it are accepted.
    """
    allowed_root = root.expanduser().resolve() if root is not None else None

    app = FastAPI(title="envscan Service", version="1.0.0")

    async def get_driver() -> SynthesisDriver:
        return driver_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/analyze", response_model=AnalyzeResponse)
    async def analyze(
        payload: AnalyzeRequest,
        driver: SynthesisDriver = Depends(get_driver),
    ) -> AnalyzeResponse:
        if allowed_root is not None:
            target = Path(payload.path).expanduser().resolve()
            if target != allowed_root and allowed_root not in target.parents:
                raise HTTPException(
                    status_code=403, detail=f"{payload.path} is outside {allowed_root}"
                )
        outcome = await driver.process_package(payload.path, dry_run=payload.dry_run)
        return AnalyzeResponse(**outcome.to_dict())

    @app.exception_handler(EnvScanError)
    async def envscan_error_handler(
        _: Any, exc: EnvScanError
    ) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    host: str = "127.0.0.1", port: int = 8000, root: Path | None = None
) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app(root=root if root is not None else Path.cwd())
    uvicorn.run(app, host=host, port=port)
