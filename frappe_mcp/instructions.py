import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List


@lru_cache(maxsize=None)
def load_instructions(path: str = None) -> Dict[str, Any]:
    """Load the bundled usage guide from JSON."""
    if path is None:
        path = Path(__file__).resolve().parent / "instructions.json"
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Instructions file not found: {p}")
    data = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(data, dict) or not isinstance(data.get("INSTRUCTIONS"), dict):
        raise ValueError("instructions.json must contain an INSTRUCTIONS object")
    return data


def categories() -> List[str]:
    return list(load_instructions()["INSTRUCTIONS"])


def get_instructions(category: str, operation: str) -> str:
    table = load_instructions()["INSTRUCTIONS"]
    category_data = table.get(category)
    if not category_data:
        return f"Category '{category}' not found in instructions."
    operation_data = category_data.get(operation)
    if not operation_data:
        return f"Operation '{operation}' not found in category '{category}'."
    return f"{operation_data['description']}\n\n{operation_data['usage']}"
