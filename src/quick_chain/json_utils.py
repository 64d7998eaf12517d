"""JSON parsing helpers for model output."""

from __future__ import annotations

OPENERS = {"{": "}", "[": "]"}


def extract_first_json_object(text: str) -> str:
    """
    Extract the first top-level JSON object or array from text.
    Models often wrap structured answers in prose or code fences.
    """
    starts = [index for index in (text.find("{"), text.find("[")) if index != -1]
    if not starts:
        raise ValueError("No JSON value found in model output.")
    start = min(starts)

    stack: list[str] = []
    in_string = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == "\"":
                in_string = False
        elif ch == "\"":
            in_string = True
        elif ch in OPENERS:
            stack.append(OPENERS[ch])
        elif stack and ch == stack[-1]:
            stack.pop()
            if not stack:
                return text[start : i + 1]

    raise ValueError("Unbalanced JSON value in model output.")
