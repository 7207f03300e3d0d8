"""Parsing helpers for text-generation oracle output."""

import json
import re


def _strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()

    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_llm_json_dict(raw_output: str) -> dict:
    """
    Parse LLM output as a JSON object.

    Falls back to the outermost {...} span when the model wraps the object
    in prose.

    Raises:
        json.JSONDecodeError: If JSON parsing fails after cleanup
        ValueError: If the payload is not a JSON object
    """
    cleaned = _strip_llm_fences(raw_output)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise
        parsed = json.loads(cleaned[start : end + 1])

    if isinstance(parsed, str):
        # Some models double-encode the object
        parsed = json.loads(parsed)
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
