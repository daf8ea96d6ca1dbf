from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from jsonschema import validate

from ..config import get_settings
from ..core.registry import ModuleRegistry
from .scenario import ScenarioSet

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_SCENARIOS_PATH = PACKAGE_DIR / "scenarios" / "standard.yaml"
SCHEMA_PATH = PACKAGE_DIR / "schemas" / "scenario_set.schema.json"


def load_schema() -> Dict[str, Any]:
    with SCHEMA_PATH.open("r", encoding="utf-8") as f:
        return json.load(f)


def scenario_set_from_dict(
    d: Dict[str, Any], registry: Optional[ModuleRegistry] = None
) -> ScenarioSet:
    """jsonschema (shape) first, then cross-validation (duplicates, unknown ids/fields)."""
    validate(instance=d, schema=load_schema())
    known = registry.ids if registry is not None else None
    return ScenarioSet.from_dict(d, known_module_ids=known)


def load_scenarios(
    path: Optional[Union[str, Path]] = None,
    registry: Optional[ModuleRegistry] = None,
) -> ScenarioSet:
    """
    Load scenario definitions from YAML (`scenarios_path` setting, else the
    packaged standard set).
    Raises on any error: missing file, invalid YAML, schema or cross-validation.
    """
    if path is None:
        path = get_settings().scenarios_path or DEFAULT_SCENARIOS_PATH
    scenarios_path = Path(path)

    with scenarios_path.open("r", encoding="utf-8") as f:
        d = yaml.safe_load(f) or {}

    return scenario_set_from_dict(d, registry=registry)
