"""Packaging policy checks for the distribution metadata."""

from __future__ import annotations

import re
from pathlib import Path

import pytest
import tomllib

PYPROJECT = Path(__file__).resolve().parents[1] / "pyproject.toml"
EXACT_PIN = re.compile(r"^[A-Za-z0-9_.\-\[\]]+==\d+(\.\d+)*$")


def _project() -> dict[str, object]:
    return tomllib.loads(PYPROJECT.read_text(encoding="utf-8"))["project"]


def _requirements() -> list[tuple[str, str]]:
    project = _project()
    pairs = [("core", req) for req in project["dependencies"]]
    for group, requirements in project.get("optional-dependencies", {}).items():
        pairs.extend((group, req) for req in requirements)
    return pairs


@pytest.mark.parametrize(("group", "requirement"), _requirements())
def test_requirement_is_exactly_pinned(group: str, requirement: str) -> None:
    assert EXACT_PIN.match(requirement), f"{group} dependency not pinned: {requirement}"


def test_runtime_stack_is_declared() -> None:
    names = {req.split("==")[0] for req in _project()["dependencies"]}
    assert {"httpx", "portalocker", "pydantic", "pydantic-settings"} <= names


def test_console_script_targets_cli() -> None:
    assert _project()["scripts"]["carbon-offsets"] == "carbon_offsets.cli:main"
