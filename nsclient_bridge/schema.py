from __future__ import annotations

from functools import lru_cache
from importlib import resources
import json
from typing import Any

from jsonschema import Draft202012Validator

INFO_SCHEMA = "info"
PERF_SCHEMA = "perf"


def load_schema(name: str) -> dict[str, Any]:
    schema_path = resources.files("nsclient_bridge").joinpath(
        f"schemas/{name}.schema.json"
    )
    return json.loads(schema_path.read_text(encoding="utf-8"))


@lru_cache(maxsize=None)
def get_validator(name: str) -> Draft202012Validator:
    return Draft202012Validator(schema=load_schema(name))


def validate_payload(name: str, payload: Any) -> list[str]:
    validator = get_validator(name)
    errors = sorted(validator.iter_errors(payload), key=lambda e: [str(p) for p in e.path])
    return [
        f"{'/'.join(str(p) for p in error.path) or '<root>'}: {error.message}"
        for error in errors
    ]
