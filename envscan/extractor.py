"""Turns free-text model responses into validated variable declarations."""

from __future__ import annotations

import asyncio
import json
from typing import Any, List, Optional, Protocol

from .errors import ExtractionError
from .logging import get_logger
from .models import Artifact, PackageConfiguration, VariableDeclaration
from .prompting import PromptBuilder

_EMPTY_MARKERS = ("no environment variables", "no env vars", "[]")
_EXCERPT_CHARS = 100

_logger = get_logger("extractor")
_decoder = json.JSONDecoder()


class TextRunner(Protocol):
    def run(self, prompt: str, *, system: str | None = None) -> str: ...


def parse_declarations(text: str) -> List[VariableDeclaration]:
    """Interpret a model response as a list of declarations.

    Tries a strict parse of the whole body, then the first array embedded in the
    surrounding prose, and finally gives up with an empty list. Never raises.
    """
    payload = _strict_array(text)
    if payload is None:
        payload = _embedded_array(text)
    if payload is None:
        lowered = text.lower()
        if any(marker in lowered for marker in _EMPTY_MARKERS):
            _logger.debug("Model reported no variables")
        else:
            _logger.warning(
                "Unparseable model response, treating as empty: %s...",
                text[:_EXCERPT_CHARS],
            )
        return []

    declarations: List[VariableDeclaration] = []
    for entry in payload:
        declaration = VariableDeclaration.from_payload(entry)
        if declaration is not None:
            declarations.append(declaration)
    return declarations


def _strict_array(text: str) -> Optional[List[Any]]:
    try:
        loaded = json.loads(text)
    except ValueError:
        return None
    return loaded if isinstance(loaded, list) else None


def _embedded_array(text: str) -> Optional[List[Any]]:
    start = text.find("[")
    while start != -1:
        try:
            loaded, _ = _decoder.raw_decode(text, start)
        except ValueError:
            loaded = None
        # Skip bracketed prose such as process.env["KEY"]; declarations are objects.
        if isinstance(loaded, list) and (
            not loaded or any(isinstance(item, dict) for item in loaded)
        ):
            return loaded
        start = text.find("[", start + 1)
    return None


class DeclarationExtractor:
    """Runs one analysis call per artifact."""

    def __init__(
        self,
        runner: TextRunner,
        *,
        prompt_builder: PromptBuilder | None = None,
        max_artifact_chars: int = 50_000,
    ) -> None:
        self.runner = runner
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.max_artifact_chars = max_artifact_chars

    async def extract(
        self,
        artifact: Artifact,
        existing: Optional[PackageConfiguration] = None,
    ) -> List[VariableDeclaration]:
        """Return the declarations found in ``artifact``.

        Raises ``ExtractionError`` when the model call itself fails.
        """
        if len(artifact.content) > self.max_artifact_chars:
            _logger.debug(
                "Skipping %s (%d chars exceeds %d)",
                artifact.path,
                len(artifact.content),
                self.max_artifact_chars,
            )
            return []

        request = self.prompt_builder.build(artifact, existing)
        _logger.debug("Analyzing %s", artifact.path)

        def _call() -> str:
            return self.runner.run(request.prompt, system=request.system)

        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(None, _call)
        except Exception as exc:
            raise ExtractionError(artifact.path, str(exc)) from exc

        response = (response or "").strip()
        if not response:
            return []
        return parse_declarations(response)


__all__ = ["DeclarationExtractor", "TextRunner", "parse_declarations"]
