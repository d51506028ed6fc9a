"""Builds extraction prompts for the analysis model."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Optional

from ..models import Artifact, PackageConfiguration
from .constants import ACCESS_PATTERNS, ATTRIBUTE_QUESTIONS, RESPONSE_SCHEMA, SYSTEM_PROMPT


@dataclass(frozen=True)
class PromptRequest:
    """System and user text for one extraction call."""

    system: str
    prompt: str


class PromptBuilder:
    """Assembles the per-artifact extraction prompt."""

    SYSTEM_PROMPT = SYSTEM_PROMPT

    def build(
        self,
        artifact: Artifact,
        existing: Optional[PackageConfiguration] = None,
    ) -> PromptRequest:
        file_name = artifact.path.name
        patterns = "\n".join(f"- {pattern}" for pattern in ACCESS_PATTERNS)
        questions = "\n".join(
            f"{index}. {question}" for index, question in enumerate(ATTRIBUTE_QUESTIONS, start=1)
        )
        lines = [
            f"Analyze this {file_name} file and identify ALL environment variables that are used or referenced.",
            "Look for patterns like:",
            patterns,
            "",
            "For each environment variable found, determine:",
            questions,
            "",
            "Note: runtime.getSetting() and getSetting() are common patterns for accessing "
            "environment variables in plugins.",
        ]
        context = self._existing_context(existing)
        if context:
            lines.extend(["", context])
        lines.extend(
            [
                "",
                "IMPORTANT: You must return ONLY a valid JSON array. Do not include any explanation "
                "or markdown. If no environment variables are found, return an empty array: []",
                "",
                "Required JSON format:",
                RESPONSE_SCHEMA,
                "",
                "File content:",
                "```",
                artifact.content,
                "```",
            ]
        )
        return PromptRequest(system=self.SYSTEM_PROMPT, prompt="\n".join(lines))

    @staticmethod
    def _existing_context(existing: Optional[PackageConfiguration]) -> str:
        if existing is None or not existing.parameters:
            return ""
        parameters = existing.to_payload()["pluginParameters"]
        return (
            "EXISTING CONFIGURATION:\n"
            "The package.json already has these environment variables configured:\n"
            f"{json.dumps(parameters, indent=2)}\n\n"
            "Only include variables that are NOT already properly configured or need updates."
        )


__all__ = ["PromptBuilder", "PromptRequest"]
