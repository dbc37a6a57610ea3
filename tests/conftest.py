"""Conformance fixture loader for patio.

Loads YAML layout fixtures from tests/fixtures/ for parametrized testing.
Each document has a ``name``, a ``layout`` and either ``cases`` (hex input
with the expected record or error kind) or ``expect_error: true`` for
layouts that must be rejected.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
import yaml

from patio import Registry, RegistryBuilder, register_core_leaves
from patio.cli import from_json

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


@dataclass
class LayoutCase:
    """A single decode case from a layout fixture."""

    fixture_name: str
    case_name: str
    layout: Any
    data: bytes
    expect: Any
    error: str | None
    roundtrip: bool


# ─── Fixture loading ────────────────────────────────────────────────────────


def load_fixture_documents() -> list[dict[str, Any]]:
    """Load every document of every fixture file, tagged with its source."""
    docs: list[dict[str, Any]] = []
    for yaml_file in sorted(FIXTURES_DIR.glob("*.yaml")):
        with yaml_file.open(encoding="utf-8") as f:
            for doc in yaml.safe_load_all(f):
                if doc is None:
                    continue
                doc["_source"] = yaml_file.name
                docs.append(doc)
    return docs


def load_layout_cases() -> list[LayoutCase]:
    """Flatten the decode cases of all positive fixtures."""
    cases: list[LayoutCase] = []
    for doc in load_fixture_documents():
        if doc.get("expect_error", False):
            continue
        for case in doc["cases"]:
            cases.append(
                LayoutCase(
                    fixture_name=doc["name"],
                    case_name=case["name"],
                    layout=doc["layout"],
                    data=bytes.fromhex(case["hex"]),
                    expect=from_json(case.get("expect")),
                    error=case.get("error"),
                    roundtrip=case.get("roundtrip", True),
                )
            )
    return cases


def load_error_layouts() -> list[dict[str, Any]]:
    return [d for d in load_fixture_documents() if d.get("expect_error", False)]


# ─── Shared fixtures ────────────────────────────────────────────────────────


@pytest.fixture
def registry() -> Registry:
    """A registry with the core leaf catalogue."""
    return register_core_leaves(RegistryBuilder()).build()
