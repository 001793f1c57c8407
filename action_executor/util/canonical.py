from __future__ import annotations

import json
from typing import Any, Dict


def canonical_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def clone_parameters(parameters: Dict[str, Any] | None) -> Dict[str, Any]:
    """Deep copy through JSON so only serializable values survive."""
    if not parameters:
        return {}
    cloned = json.loads(canonical_json(parameters))
    return cloned if isinstance(cloned, dict) else {}
