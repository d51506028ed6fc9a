"""Shared constants for declaration extraction prompts."""

from __future__ import annotations

SYSTEM_PROMPT = (
    "You are an expert code analyzer. Extract environment variables from code and "
    "documentation files. Return only valid JSON."
)

ACCESS_PATTERNS: tuple[str, ...] = (
    "process.env.VARIABLE_NAME",
    'process.env["VARIABLE_NAME"]',
    "runtime.getSetting('VARIABLE_NAME')",
    'runtime.getSetting("VARIABLE_NAME")',
    "getSetting('VARIABLE_NAME') or getSetting(\"VARIABLE_NAME\")",
    "Environment variables mentioned in README files",
    "Configuration objects that reference env vars",
    "Default values or fallbacks for env vars",
)

ATTRIBUTE_QUESTIONS: tuple[str, ...] = (
    "The variable name (extract from process.env.X, runtime.getSetting('X'), getSetting('X'), etc.)",
    "The data type (string, number, boolean)",
    "A description of what it's used for based on the code context",
    "Whether it's required or optional (look for error handling, default values, or conditional usage)",
    "Any default values (from fallback assignments, ternary operators, or || operators)",
)

RESPONSE_SCHEMA = """[
  {
    "name": "VARIABLE_NAME",
    "type": "string|number|boolean",
    "description": "What this variable is used for",
    "required": true|false,
    "defaultValue": "default value if any"
  }
]"""


__all__ = ["ACCESS_PATTERNS", "ATTRIBUTE_QUESTIONS", "RESPONSE_SCHEMA", "SYSTEM_PROMPT"]
