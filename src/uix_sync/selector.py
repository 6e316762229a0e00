"""
Selector Module.

Selectors come in four shapes, told apart once when they are compiled:

- Predicate: a mapping of field name to matcher, e.g. ``{"text": "OK", "clickable": True}``
- Shorthand: a CSS-like string, e.g. ``"#login"``, ``".Button"``, ``"[text*=Log]"``, ``"OK"``
- Path-query: a restricted XPath-like string, e.g. ``'//Button[@text="Submit"]'``
- Alternatives: a list of any of the above; the first one that matches anything wins

`compile_selector` turns user input into one of the frozen selector classes
below. Matching itself lives in `query_engine`.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Mapping, Optional, Sequence, Tuple, Union

from .errors import InvalidSelectorError
from .ui_tree import ATTRIBUTE_ALIASES, FLAG_ATTRIBUTES


class SelectorKind(Enum):
    PREDICATE = "predicate"
    SHORTHAND = "shorthand"
    PATH_QUERY = "path_query"
    ALTERNATIVES = "alternatives"


# Accepted predicate keys -> canonical field
PREDICATE_FIELDS = {
    "text": "text",
    "contains": "contains",
    "textContains": "contains",
    "text_contains": "contains",
    "textMatches": "text_matches",
    "text_matches": "text_matches",
    "resourceId": "resource_id",
    "resource_id": "resource_id",
    "resource-id": "resource_id",
    "id": "resource_id",
    "className": "class_name",
    "class_name": "class_name",
    "class": "class_name",
    "contentDesc": "content_desc",
    "content_desc": "content_desc",
    "content-desc": "content_desc",
    "description": "content_desc",
    "index": "index",
    "bounds": "bounds",
    "package": "package",
}
# Boolean flags resolve to their XML attribute name
for _alias, _xml_name in ATTRIBUTE_ALIASES.items():
    if _xml_name in FLAG_ATTRIBUTES:
        PREDICATE_FIELDS[_alias] = _xml_name

PATTERN_FIELDS = {"text", "resource_id", "class_name", "content_desc"}

PATH_PREDICATE_ATTRIBUTES = {"text", "resource-id", "content-desc", "clickable"}

SHORTHAND_ID = "id"
SHORTHAND_CLASS = "class"
SHORTHAND_ATTR_EQUALS = "attr_equals"
SHORTHAND_ATTR_CONTAINS = "attr_contains"
SHORTHAND_ATTR_EXISTS = "attr_exists"
SHORTHAND_TEXT = "text"

AXIS_CHILD = "/"
AXIS_DESCENDANT = "//"


def _flag_value(value: Any, key: str) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower()
    raise InvalidSelectorError(f"Field {key!r} expects a boolean, got {value!r}")


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


class BaseSelector:
    kind: ClassVar[SelectorKind]
    source: Any

    def describe(self) -> str:
        return f"{self.kind.value} {self.source!r}"

    def __str__(self) -> str:
        return self.describe()


@dataclass(frozen=True)
class FieldCondition:
    """One conjunct of a predicate selector."""

    field: str
    value: Union[str, "re.Pattern[str]", None]
    # Raw attribute name for keys outside the known field list
    attribute: Optional[str] = None


@dataclass(frozen=True)
class PredicateSelector(BaseSelector):
    kind: ClassVar[SelectorKind] = SelectorKind.PREDICATE
    source: Any
    conditions: Tuple[FieldCondition, ...]


@dataclass(frozen=True)
class ShorthandSelector(BaseSelector):
    kind: ClassVar[SelectorKind] = SelectorKind.SHORTHAND
    source: str
    mode: str
    value: Optional[str] = None
    attribute: Optional[str] = None


@dataclass(frozen=True)
class PathPredicate:
    """Bracketed restriction of a path step: an attribute test or a 1-based position."""

    attribute: Optional[str] = None
    value: Optional[str] = None
    position: Optional[int] = None
    # Unrecognised predicates are kept and match nothing
    supported: bool = True


@dataclass(frozen=True)
class PathStep:
    axis: str
    name: str
    predicate: Optional[PathPredicate] = None


@dataclass(frozen=True)
class PathQuerySelector(BaseSelector):
    kind: ClassVar[SelectorKind] = SelectorKind.PATH_QUERY
    source: str
    steps: Tuple[PathStep, ...]


@dataclass(frozen=True)
class AlternativesSelector(BaseSelector):
    kind: ClassVar[SelectorKind] = SelectorKind.ALTERNATIVES
    source: Any
    alternatives: Tuple[BaseSelector, ...]

    def describe(self) -> str:
        return " | ".join(alt.describe() for alt in self.alternatives)


Selector = Union[PredicateSelector, ShorthandSelector, PathQuerySelector, AlternativesSelector]
SelectorLike = Union[BaseSelector, Mapping[str, Any], str, Sequence[Any]]


def compile_selector(raw: SelectorLike) -> Selector:
    """
    Decides the selector kind from the shape of `raw` and compiles it.

    Raises:
        InvalidSelectorError: the input is not a recognised selector shape or is malformed.
    """
    if isinstance(raw, BaseSelector):
        return raw  # type: ignore[return-value]
    if isinstance(raw, Mapping):
        return _compile_predicate(raw)
    if isinstance(raw, str):
        if not raw.strip():
            raise InvalidSelectorError("Empty selector string")
        if raw.lstrip().startswith("/"):
            return _compile_path(raw.strip())
        return _compile_shorthand(raw)
    if isinstance(raw, (list, tuple)):
        if not raw:
            raise InvalidSelectorError("Alternatives selector needs at least one entry")
        return AlternativesSelector(source=raw, alternatives=tuple(compile_selector(s) for s in raw))
    raise InvalidSelectorError(f"Unsupported selector type: {type(raw).__name__}")


def _compile_predicate(mapping: Mapping[str, Any]) -> PredicateSelector:
    conditions = []
    for key, value in mapping.items():
        field = PREDICATE_FIELDS.get(key)
        if field is None:
            if isinstance(value, bool):
                value = "true" if value else "false"
            conditions.append(FieldCondition("attribute", value if value is None else str(value), attribute=key))
        elif field in FLAG_ATTRIBUTES:
            conditions.append(FieldCondition(field, _flag_value(value, key)))
        elif field == "contains":
            if not isinstance(value, str):
                raise InvalidSelectorError(f"Field {key!r} expects a string, got {value!r}")
            conditions.append(FieldCondition(field, value.lower()))
        elif field == "text_matches":
            if isinstance(value, str):
                try:
                    value = re.compile(value, re.IGNORECASE)
                except re.error as e:
                    raise InvalidSelectorError(f"Invalid pattern for {key!r}: {e}") from e
            if not isinstance(value, re.Pattern):
                raise InvalidSelectorError(f"Field {key!r} expects a pattern, got {value!r}")
            conditions.append(FieldCondition(field, value))
        elif isinstance(value, re.Pattern):
            if field not in PATTERN_FIELDS:
                raise InvalidSelectorError(f"Field {key!r} does not accept a pattern")
            conditions.append(FieldCondition(field, value))
        elif field == "index":
            conditions.append(FieldCondition(field, str(value)))
        elif isinstance(value, str):
            conditions.append(FieldCondition(field, value))
        else:
            raise InvalidSelectorError(f"Field {key!r} expects a string or pattern, got {value!r}")
    return PredicateSelector(source=dict(mapping), conditions=tuple(conditions))


def _compile_shorthand(text: str) -> ShorthandSelector:
    if text.startswith("#"):
        if len(text) == 1:
            raise InvalidSelectorError("Empty id selector")
        return ShorthandSelector(source=text, mode=SHORTHAND_ID, value=text[1:])

    if text.startswith("."):
        if len(text) == 1:
            raise InvalidSelectorError("Empty class selector")
        return ShorthandSelector(source=text, mode=SHORTHAND_CLASS, value=text[1:])

    if text.startswith("[") and text.endswith("]"):
        inner = text[1:-1]
        if "*=" in inner:
            attr, value = inner.split("*=", 1)
            mode = SHORTHAND_ATTR_CONTAINS
        elif "=" in inner:
            attr, value = inner.split("=", 1)
            mode = SHORTHAND_ATTR_EQUALS
        else:
            attr, value, mode = inner, None, SHORTHAND_ATTR_EXISTS
        attr = attr.strip()
        if not attr:
            raise InvalidSelectorError(f"Missing attribute name in {text!r}")
        return ShorthandSelector(
            source=text,
            mode=mode,
            attribute=attr,
            value=_unquote(value) if value is not None else None,
        )

    return ShorthandSelector(source=text, mode=SHORTHAND_TEXT, value=text)


def _compile_path(text: str) -> PathQuerySelector:
    steps = []
    pos, n = 0, len(text)
    while pos < n:
        if text.startswith("//", pos):
            axis = AXIS_DESCENDANT
            pos += 2
        elif text.startswith("/", pos):
            axis = AXIS_CHILD
            pos += 1
        else:
            raise InvalidSelectorError(f"Expected '/' or '//' at offset {pos} in {text!r}")

        start = pos
        while pos < n and text[pos] not in "/[]":
            pos += 1
        name = text[start:pos].strip()
        if not name:
            raise InvalidSelectorError(f"Missing step name at offset {start} in {text!r}")

        predicate = None
        if pos < n and text[pos] == "]":
            raise InvalidSelectorError(f"Unbalanced ']' at offset {pos} in {text!r}")
        if pos < n and text[pos] == "[":
            end = _find_closing_bracket(text, pos)
            predicate = _compile_path_predicate(text[pos + 1:end])
            pos = end + 1
            if pos < n and text[pos] != "/":
                raise InvalidSelectorError(f"Only one predicate per step is supported in {text!r}")
        steps.append(PathStep(axis=axis, name=name, predicate=predicate))

    if not steps:
        raise InvalidSelectorError(f"Empty path query {text!r}")
    return PathQuerySelector(source=text, steps=tuple(steps))


def _find_closing_bracket(text: str, open_pos: int) -> int:
    quote = None
    for i in range(open_pos + 1, len(text)):
        ch = text[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "]":
            return i
    raise InvalidSelectorError(f"Unterminated predicate in {text!r}")


def _compile_path_predicate(body: str) -> PathPredicate:
    body = body.strip()
    if re.fullmatch(r"\d+", body):
        position = int(body)
        # Positions are 1-based; [0] can never match
        return PathPredicate(position=position, supported=position >= 1)

    match = re.fullmatch(r"@([\w\-]+)\s*=\s*(['\"])(.*)\2", body, re.DOTALL)
    if match and match.group(1) in PATH_PREDICATE_ATTRIBUTES:
        return PathPredicate(attribute=match.group(1), value=match.group(3))
    return PathPredicate(supported=False)
