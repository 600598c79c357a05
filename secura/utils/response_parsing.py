"""
Parsing helpers for free-text model responses.
"""

import json
import re
from typing import Any, Dict

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_OUTER_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def extract_json(content: str) -> Dict[str, Any]:
    """
    Pull a JSON object out of a model answer.

    Accepts bare JSON, JSON inside a markdown code fence, or JSON embedded in
    prose. Raises ValueError if no object can be parsed.
    """
    if not content or not content.strip():
        raise ValueError("empty model response")

    candidates = []
    fenced = _FENCED_JSON.search(content)
    if fenced:
        candidates.append(fenced.group(1).strip())
    candidates.append(content.strip())
    outer = _OUTER_OBJECT.search(content)
    if outer:
        candidates.append(outer.group(0))

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise ValueError("no JSON object found in model response")
