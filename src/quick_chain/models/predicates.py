"""Tagged-variant predicates evaluated over a step's output."""

from __future__ import annotations

import json
import re
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from quick_chain.json_utils import extract_first_json_object

LABEL_STRIP_CHARS = " \t\r\n.!?:;,\"'`*"


def normalize_label(text: str, *, case_sensitive: bool = False) -> str:
    normalized = re.sub(r"\s+", " ", text.strip(LABEL_STRIP_CHARS))
    if case_sensitive:
        return normalized
    return normalized.lower()


class BasePredicate(BaseModel):
    model_config = ConfigDict(frozen=True)

    def evaluate(self, output: str, success: bool = True) -> bool:
        raise NotImplementedError("Predicate.evaluate must be implemented by subclasses.")


class Always(BasePredicate):
    kind: Literal["always"] = "always"

    def evaluate(self, output: str, success: bool = True) -> bool:
        return True


class Succeeded(BasePredicate):
    kind: Literal["succeeded"] = "succeeded"

    def evaluate(self, output: str, success: bool = True) -> bool:
        return success


class Failed(BasePredicate):
    kind: Literal["failed"] = "failed"

    def evaluate(self, output: str, success: bool = True) -> bool:
        return not success


class Equals(BasePredicate):
    """Matches when the output, stripped of surrounding punctuation, equals ``value``."""

    kind: Literal["equals"] = "equals"
    value: str
    case_sensitive: bool = False

    def evaluate(self, output: str, success: bool = True) -> bool:
        return normalize_label(output, case_sensitive=self.case_sensitive) == normalize_label(
            self.value, case_sensitive=self.case_sensitive
        )


class Contains(BasePredicate):
    kind: Literal["contains"] = "contains"
    text: str
    case_sensitive: bool = False

    def evaluate(self, output: str, success: bool = True) -> bool:
        if self.case_sensitive:
            return self.text in output
        return self.text.lower() in output.lower()


class Matches(BasePredicate):
    kind: Literal["matches"] = "matches"
    pattern: str
    ignore_case: bool = False

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, pattern: str) -> str:
        try:
            re.compile(pattern)
        except re.error as exc:
            raise ValueError(f"Invalid regular expression {pattern!r}: {exc}") from exc
        return pattern

    def evaluate(self, output: str, success: bool = True) -> bool:
        flags = re.IGNORECASE if self.ignore_case else 0
        return re.search(self.pattern, output, flags) is not None


class MinLength(BasePredicate):
    kind: Literal["min_length"] = "min_length"
    chars: int = Field(ge=0)

    def evaluate(self, output: str, success: bool = True) -> bool:
        return len(output.strip()) >= self.chars


class MaxLength(BasePredicate):
    kind: Literal["max_length"] = "max_length"
    chars: int = Field(ge=0)

    def evaluate(self, output: str, success: bool = True) -> bool:
        return len(output.strip()) <= self.chars


class JsonField(BasePredicate):
    """
    Looks up a dotted ``path`` in JSON output.
    Without ``value`` the field only has to exist; otherwise it must equal ``value``.
    """

    kind: Literal["json_field"] = "json_field"
    path: str
    value: Any = None

    def evaluate(self, output: str, success: bool = True) -> bool:
        document = parse_json_output(output)
        if document is None:
            return False
        found, field_value = lookup_path(document, self.path)
        if not found:
            return False
        if "value" not in self.model_fields_set:
            return True
        return field_value == self.value


class AllOf(BasePredicate):
    kind: Literal["all_of"] = "all_of"
    predicates: list[Predicate]

    def evaluate(self, output: str, success: bool = True) -> bool:
        return all(predicate.evaluate(output, success) for predicate in self.predicates)


class AnyOf(BasePredicate):
    kind: Literal["any_of"] = "any_of"
    predicates: list[Predicate]

    def evaluate(self, output: str, success: bool = True) -> bool:
        return any(predicate.evaluate(output, success) for predicate in self.predicates)


class Not(BasePredicate):
    kind: Literal["not"] = "not"
    predicate: Predicate

    def evaluate(self, output: str, success: bool = True) -> bool:
        return not self.predicate.evaluate(output, success)


Predicate = Annotated[
    Union[
        Always,
        Succeeded,
        Failed,
        Equals,
        Contains,
        Matches,
        MinLength,
        MaxLength,
        JsonField,
        AllOf,
        AnyOf,
        Not,
    ],
    Field(discriminator="kind"),
]

AllOf.model_rebuild()
AnyOf.model_rebuild()
Not.model_rebuild()


def parse_json_output(output: str) -> Any | None:
    try:
        return json.loads(output)
    except ValueError:
        pass
    try:
        return json.loads(extract_first_json_object(output))
    except ValueError:
        return None


def lookup_path(document: Any, path: str) -> tuple[bool, Any]:
    current = document
    for part in path.split("."):
        if isinstance(current, dict):
            if part not in current:
                return False, None
            current = current[part]
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return False, None
            current = current[index]
        else:
            return False, None
    return True, current
