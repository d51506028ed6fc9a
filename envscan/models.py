"""Core data models shared across envscan components."""

import copy
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

DEFAULT_PLUGIN_TYPE = "elizaos:plugin:1.0.0"

VARIABLE_TYPES = ("string", "number", "boolean")

_TYPE_ALIASES = {
    "str": "string",
    "text": "string",
    "url": "string",
    "int": "number",
    "integer": "number",
    "float": "number",
    "double": "number",
    "bool": "boolean",
}

_KNOWN_PARAMETER_KEYS = ("type", "description", "required", "default")


def normalise_type(value: object) -> str:
    """Map a free-form type label onto one of ``string|number|boolean``."""
    if not isinstance(value, str):
        return "string"
    lowered = value.strip().lower()
    if lowered in VARIABLE_TYPES:
        return lowered
    return _TYPE_ALIASES.get(lowered, "string")


@dataclass(frozen=True)
class VariableDeclaration:
    """One environment variable discovered in an artifact."""

    name: str
    type: str
    description: str
    required: Optional[bool] = None
    default_value: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: object) -> Optional["VariableDeclaration"]:
        """Build a declaration from one decoded LLM entry, or ``None`` if unusable."""
        if not isinstance(payload, Mapping):
            return None
        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            return None
        description = payload.get("description")
        required = payload.get("required")
        default = payload.get("defaultValue")
        if isinstance(default, bool):
            default = "true" if default else "false"
        elif isinstance(default, (int, float)):
            default = str(default)
        elif not isinstance(default, str):
            default = None
        return cls(
            name=name.strip(),
            type=normalise_type(payload.get("type")),
            description=description if isinstance(description, str) else "",
            required=required if isinstance(required, bool) else None,
            default_value=default,
        )


@dataclass
class ParameterSpec:
    """Attributes stored under a variable name in ``pluginParameters``."""

    type: Optional[str]
    description: Optional[str]
    required: Optional[bool] = None
    default: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)
    # Hand-written entries that are not objects are written back verbatim from ``raw``.
    raw: Any = None
    opaque: bool = False

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ParameterSpec":
        extra = {key: value for key, value in payload.items() if key not in _KNOWN_PARAMETER_KEYS}
        return cls(
            type=payload.get("type"),
            description=payload.get("description"),
            required=payload.get("required"),
            default=payload.get("default"),
            extra=extra,
        )

    @classmethod
    def verbatim(cls, value: Any) -> "ParameterSpec":
        return cls(type=None, description=None, raw=value, opaque=True)

    def to_payload(self) -> Any:
        if self.opaque:
            return self.raw
        data: Dict[str, Any] = {}
        if self.type is not None:
            data["type"] = self.type
        if self.description is not None:
            data["description"] = self.description
        if self.required is not None:
            data["required"] = self.required
        if self.default is not None:
            data["default"] = self.default
        data.update(self.extra)
        return data

    def copy(self) -> "ParameterSpec":
        return ParameterSpec(
            type=self.type,
            description=self.description,
            required=self.required,
            default=self.default,
            extra=copy.deepcopy(self.extra),
            raw=copy.deepcopy(self.raw),
            opaque=self.opaque,
        )


@dataclass
class PackageConfiguration:
    """The ``agentConfig`` block of a package manifest."""

    plugin_type: str = DEFAULT_PLUGIN_TYPE
    parameters: Dict[str, ParameterSpec] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: object) -> Optional["PackageConfiguration"]:
        if not isinstance(payload, Mapping):
            return None
        plugin_type = payload.get("pluginType")
        raw_parameters = payload.get("pluginParameters")
        parameters: Dict[str, ParameterSpec] = {}
        if isinstance(raw_parameters, Mapping):
            for name, param in raw_parameters.items():
                if not isinstance(name, str):
                    continue
                if isinstance(param, Mapping):
                    parameters[name] = ParameterSpec.from_payload(param)
                else:
                    parameters[name] = ParameterSpec.verbatim(param)
        return cls(
            plugin_type=plugin_type if isinstance(plugin_type, str) else DEFAULT_PLUGIN_TYPE,
            parameters=parameters,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "pluginType": self.plugin_type,
            "pluginParameters": {
                name: param.to_payload() for name, param in self.parameters.items()
            },
        }

    def copy(self) -> "PackageConfiguration":
        return PackageConfiguration(
            plugin_type=self.plugin_type,
            parameters={name: param.copy() for name, param in self.parameters.items()},
        )


@dataclass
class Artifact:
    """A file selected for analysis together with its text at analysis time."""

    path: Path
    content: str


class PackageStatus(str, Enum):
    """Lifecycle states of one package during a run."""

    DISCOVERED = "discovered"
    ANALYZED = "analyzed"
    UNCHANGED = "unchanged"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self not in (PackageStatus.DISCOVERED, PackageStatus.ANALYZED)


@dataclass
class PackageOutcome:
    """Result of processing a single package."""

    name: str
    status: PackageStatus = PackageStatus.DISCOVERED
    discovered: List[str] = field(default_factory=list)
    old_version: Optional[str] = None
    new_version: Optional[str] = None
    published: bool = False
    failures: int = 0
    reason: Optional[str] = None
    error: Optional[BaseException] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "discovered": list(self.discovered),
            "old_version": self.old_version,
            "new_version": self.new_version,
            "published": self.published,
            "failures": self.failures,
            "reason": self.reason,
            "error": str(self.error) if self.error is not None else None,
        }


@dataclass
class RunSummary:
    """Terminal classification for every package visited in a run."""

    outcomes: List[PackageOutcome] = field(default_factory=list)

    def add(self, outcome: PackageOutcome) -> None:
        self.outcomes.append(outcome)

    def by_status(self, status: PackageStatus) -> List[PackageOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status is status]

    def counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in PackageStatus if status.terminal}
        for outcome in self.outcomes:
            counts[outcome.status.value] = counts.get(outcome.status.value, 0) + 1
        return counts
