from __future__ import annotations

"""I/O utilities.

JSON file loading/saving and conversion of the analysis dataclasses into
plain JSON-compatible structures.
"""

from dataclasses import fields, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Union
import json

import numpy as np


PathLike = Union[str, Path]


def load_json_file(path: PathLike) -> Dict[str, Any]:
    """Load a JSON file into a dictionary.

    Args:
        path: Path to a JSON file.

    Returns:
        Parsed JSON as a dictionary.
    """
    p = Path(path)
    with p.open("r") as f:
        return json.load(f)


def save_json_file(path: PathLike, data: Any) -> Path:
    """Write `data` as indented JSON, creating parent directories."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w") as f:
        json.dump(to_jsonable(data), f, indent=2, ensure_ascii=False)
    return p


def to_jsonable(value: Any) -> Any:
    """Recursively convert dataclasses, enums, tuples and mappings to JSON types."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {(k.value if isinstance(k, Enum) else k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return value
