"""Core variable rule engine.

A core declares its environment variables together with a pipe-delimited
rule string, for example ``required|number|max:64``. This module parses those
strings and applies them to a server's environment map.

Supported tokens: ``required``, ``nullable``, ``string``, ``number``,
``boolean``, ``max:<n>``, ``default:<value>`` and ``regex:/pattern/flags``.
Unknown tokens are ignored.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Literal, Mapping, Optional, Union

from hostpanel.core.exceptions import ValidationError

EnvValue = Union[str, int, float, bool]
Mode = Literal["create", "edit"]

TRUTHY = {"1", "true", "t", "yes", "y", "on"}
FALSY = {"0", "false", "f", "no", "n", "off"}

# JavaScript-style regex flags understood by the rule syntax
_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class VariableRuleError(ValidationError):
    """An environment value violates the rules of a core variable."""

    def __init__(self, name: str, env_variable: str, reason: str):
        self.variable = name
        self.env_variable = env_variable
        super().__init__(f"Variable '{name}' ({env_variable}) {reason}")


@dataclass
class ParsedRuleSpec:
    """Structured form of a rule string."""

    raw: str = ""
    required: bool = False
    nullable: bool = False
    is_string: bool = False
    is_number: bool = False
    is_boolean: bool = False
    max: Optional[int] = None
    default: Optional[str] = None
    regex: Optional[re.Pattern] = None


def _anchor_end(body: str) -> str:
    """Rewrite unescaped ``$`` outside classes as ``\\Z`` so a trailing newline does not match."""
    out = []
    escaped = in_class = False
    for char in body:
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == "[":
            in_class = True
        elif char == "]":
            in_class = False
        elif char == "$" and not in_class:
            out.append(r"\Z")
            continue
        out.append(char)
    return "".join(out)


def _parse_int_prefix(raw: str) -> Optional[int]:
    """Leading integer of ``raw`` (``"10abc"`` is 10), or None."""
    match = _LEADING_INT.match(raw)
    return int(match.group(1)) if match else None


def _compile_regex(pattern_raw: str) -> Optional[re.Pattern]:
    """Compile ``/body/flags`` or a bare pattern; invalid patterns yield None."""
    if pattern_raw.startswith("/"):
        last_slash = pattern_raw.rfind("/")
        if last_slash > 0:
            body = pattern_raw[1:last_slash]
            flags = 0
            for flag in pattern_raw[last_slash + 1 :]:
                flags |= _REGEX_FLAGS.get(flag, 0)
            if not flags & re.MULTILINE:
                body = _anchor_end(body)
            try:
                return re.compile(body, flags)
            except re.error:
                pass
    try:
        return re.compile(_anchor_end(pattern_raw))
    except re.error:
        return None


def parse_rules(rules: Optional[str]) -> ParsedRuleSpec:
    """Parse a rule string such as ``required|string|max:20``."""
    spec = ParsedRuleSpec(raw=rules or "")
    tokens = [t.strip() for t in spec.raw.split("|") if t.strip()]

    for token in tokens:
        if token == "required":
            spec.required = True
        elif token == "nullable":
            spec.nullable = True
        elif token == "string":
            spec.is_string = True
        elif token == "number":
            spec.is_number = True
        elif token == "boolean":
            spec.is_boolean = True
        elif token.startswith("default:"):
            spec.default = token[len("default:") :]
        elif token.startswith("max:"):
            spec.max = _parse_int_prefix(token[len("max:") :])
        elif token.startswith("regex:"):
            compiled = _compile_regex(token[len("regex:") :])
            if compiled is not None:
                spec.regex = compiled

    return spec


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _coerce_boolean(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (int, float)):
        return int(value) if value in (0, 1) else None
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUTHY:
            return 1
        if lowered in FALSY:
            return 0
    return None


def _coerce_number(value: Any) -> Optional[Union[int, float]]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return None
        if not math.isfinite(number):
            return None
        return int(number) if number.is_integer() else number
    return None


def apply_core_variable_rules(
    variables: Iterable[Mapping[str, Any]],
    environment: Optional[Mapping[str, EnvValue]],
    mode: Mode = "create",
) -> Dict[str, EnvValue]:
    """Validate and normalize ``environment`` against the core's variables.

    Variables are processed in declaration order and the first violation is
    raised; nothing is aggregated. ``mode`` is accepted for both server
    creation and later edits but does not change the outcome.

    Returns:
        A new environment dict with defaults filled in and booleans/numbers
        coerced.

    Raises:
        VariableRuleError: On the first failing variable.
    """
    final_env: Dict[str, EnvValue] = dict(environment or {})

    for variable in variables:
        spec = parse_rules(variable.get("rules"))
        key = variable["env_variable"]
        name = variable.get("name") or key
        value = final_env.get(key)

        if _is_empty(value) and spec.default is not None:
            value = spec.default
            final_env[key] = value

        if spec.required and _is_empty(value):
            raise VariableRuleError(name, key, "is required")

        if _is_empty(value) and spec.nullable:
            final_env[key] = ""
            continue

        if spec.is_boolean:
            if _is_empty(value):
                continue
            coerced = _coerce_boolean(value)
            if coerced is None:
                raise VariableRuleError(name, key, "must be a boolean (0/1)")
            final_env[key] = coerced
            continue

        if spec.is_number:
            if _is_empty(value):
                continue
            number = _coerce_number(value)
            if number is None:
                raise VariableRuleError(name, key, "must be numeric")
            if spec.max is not None and number > spec.max:
                raise VariableRuleError(
                    name, key, f"exceeds the maximum ({spec.max})"
                )
            final_env[key] = number
            continue

        if spec.is_string and value is not None and not isinstance(value, str):
            raise VariableRuleError(name, key, "must be a string")

        if spec.max is not None and isinstance(value, str) and len(value) > spec.max:
            raise VariableRuleError(
                name, key, f"exceeds the maximum length ({spec.max})"
            )

        if (
            spec.regex is not None
            and isinstance(value, str)
            and value != ""
            and not spec.regex.search(value)
        ):
            raise VariableRuleError(name, key, "does not match the required pattern")

    return final_env


def build_default_environment(
    variables: Iterable[Mapping[str, Any]],
) -> Dict[str, str]:
    """Initial environment containing only declared defaults."""
    env: Dict[str, str] = {}
    for variable in variables:
        spec = parse_rules(variable.get("rules"))
        env[variable["env_variable"]] = spec.default if spec.default is not None else ""
    return env
