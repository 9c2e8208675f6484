"""Opset version reconciliation.

Turns the opset imports a model declares (possibly empty, possibly using the
``ai.onnx`` alias for the default domain) plus a snapshot of the latest
versions a schema registry knows about into the canonical domain→version
map handed to the graph.

Everything here is pure: the caller decides what to append to the envelope
and whether to warn.
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Tuple

ONNX_DOMAIN = ""
ONNX_DOMAIN_ALIAS = "ai.onnx"
LEGACY_OPSET_THRESHOLD = 7

OpsetImport = Tuple[str, int]


@dataclass(frozen=True)
class OpsetResolution:
    domain_to_version: Mapping[str, int]
    # (domain, version) pairs the envelope does not declare yet.
    added_imports: Tuple[OpsetImport, ...]
    # Default-domain version when below LEGACY_OPSET_THRESHOLD.
    legacy_version: int | None = None


def canonical_domain(domain: str) -> str:
    """Map the ``ai.onnx`` alias onto the empty default domain."""
    if domain == ONNX_DOMAIN_ALIAS:
        return ONNX_DOMAIN
    return domain


def _finish(
    resolved: dict[str, int], added: list[OpsetImport]
) -> OpsetResolution:
    legacy = None
    default_version = resolved.get(ONNX_DOMAIN)
    if default_version is not None and default_version < LEGACY_OPSET_THRESHOLD:
        legacy = default_version
    return OpsetResolution(
        domain_to_version=MappingProxyType(resolved),
        added_imports=tuple(added),
        legacy_version=legacy,
    )


def resolve_latest(
    latest: Mapping[str, int], onnx_domain_only: bool = False
) -> OpsetResolution:
    """Nothing declared: take the registry's latest version per domain."""
    resolved: dict[str, int] = {}
    for domain, version in latest.items():
        domain = canonical_domain(domain)
        if onnx_domain_only and domain != ONNX_DOMAIN:
            continue
        resolved[domain] = int(version)
    return _finish(resolved, list(resolved.items()))


def resolve_explicit(domain_to_version: Mapping[str, int]) -> OpsetResolution:
    """Caller-supplied versions for a fresh model; registry not consulted."""
    resolved: dict[str, int] = {}
    for domain, version in domain_to_version.items():
        resolved[canonical_domain(domain)] = int(version)
    return _finish(resolved, list(resolved.items()))


def resolve_declared(
    declared: Iterable[OpsetImport], latest: Mapping[str, int]
) -> OpsetResolution:
    """Declared imports are authoritative; the registry fills the gaps.

    A domain declared twice keeps its last version. Every registry domain the
    model does not declare is resolved to the registry's latest version and
    reported in ``added_imports`` so the envelope can be kept in sync.
    """
    resolved: dict[str, int] = {}
    for domain, version in declared:
        resolved[canonical_domain(domain)] = int(version)
    added: list[OpsetImport] = []
    for domain, version in latest.items():
        domain = canonical_domain(domain)
        if domain not in resolved:
            resolved[domain] = int(version)
            added.append((domain, int(version)))
    return _finish(resolved, added)


def resolve_opset_versions(
    declared: Iterable[OpsetImport],
    latest: Mapping[str, int],
    onnx_domain_only: bool = False,
) -> OpsetResolution:
    declared = list(declared)
    if not declared:
        return resolve_latest(latest, onnx_domain_only)
    return resolve_declared(declared, latest)


__all__ = [
    "ONNX_DOMAIN",
    "ONNX_DOMAIN_ALIAS",
    "LEGACY_OPSET_THRESHOLD",
    "OpsetResolution",
    "canonical_domain",
    "resolve_latest",
    "resolve_explicit",
    "resolve_declared",
    "resolve_opset_versions",
]
