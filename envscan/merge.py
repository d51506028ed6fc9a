"""Reconciles discovered declarations with a package's existing configuration."""

from __future__ import annotations

from typing import Iterable, List, Optional

from .models import DEFAULT_PLUGIN_TYPE, PackageConfiguration, ParameterSpec, VariableDeclaration


def dedupe_declarations(declarations: Iterable[VariableDeclaration]) -> List[VariableDeclaration]:
    """Drop repeated names, keeping the first occurrence in input order."""
    seen: set[str] = set()
    unique: List[VariableDeclaration] = []
    for declaration in declarations:
        if declaration.name in seen:
            continue
        seen.add(declaration.name)
        unique.append(declaration)
    return unique


def merge_declarations(
    existing: Optional[PackageConfiguration],
    discovered: Iterable[VariableDeclaration],
) -> PackageConfiguration:
    """Return a new configuration with undeclared variables added.

    Entries already present in ``existing`` are carried over untouched; a discovered
    name that is already declared is ignored.
    """
    if existing is not None:
        merged = existing.copy()
    else:
        merged = PackageConfiguration(plugin_type=DEFAULT_PLUGIN_TYPE)

    for declaration in discovered:
        if declaration.name in merged.parameters:
            continue
        param = ParameterSpec(type=declaration.type, description=declaration.description)
        if declaration.required is not None:
            param.required = declaration.required
        if declaration.default_value:
            param.default = declaration.default_value
        merged.parameters[declaration.name] = param
    return merged


def has_configuration_changed(
    prior: Optional[PackageConfiguration],
    merged: PackageConfiguration,
) -> bool:
    """True when ``merged`` differs from ``prior`` in any persisted attribute."""
    if prior is None:
        return True

    prior_params = prior.parameters
    merged_params = merged.parameters
    if len(prior_params) != len(merged_params):
        return True

    for name, param in merged_params.items():
        before = prior_params.get(name)
        if before is None:
            return True
        if (
            before.type != param.type
            or before.description != param.description
            or before.required != param.required
            or before.default != param.default
            or before.opaque != param.opaque
            or before.raw != param.raw
        ):
            return True
    return False


__all__ = ["dedupe_declarations", "has_configuration_changed", "merge_declarations"]
