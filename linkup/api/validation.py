"""
Linkup Backend - Input Validation & Sanitisation
==================================================

What:  Declarative per-field rules applied to JSON request bodies.
How:   A schema maps field names to frozen `FieldRules`. `validate()` checks
       every field, collecting all errors rather than stopping at the first,
       and rewrites sanitised string fields in the payload in place.

Rule order per field:
    1. required + missing/blank  → "<field> is required"  (nothing else checked)
    2. optional + missing/blank  → skipped
    3. non-string value          → "<field> must be a string"
    4. min/max length            → measured on the trimmed value; both may fire
    5. pattern                   → "<field> format is invalid"
    6. sanitize                  → script blocks, tags and javascript: removed

Nothing here knows about HTTP; the pipeline turns a failed result into a
VALIDATION_ERROR envelope.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Pattern

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]*>?")
_JS_SCHEME = re.compile(r"javascript:", re.IGNORECASE)


def sanitize_html(value: str) -> str:
    """Strip script blocks, remaining tags and javascript: prefixes, then trim."""
    value = _SCRIPT_BLOCK.sub("", value)
    value = _TAG.sub("", value)
    value = _JS_SCHEME.sub("", value)
    return value.strip()


@dataclass(frozen=True)
class FieldRules:
    required: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[Pattern[str]] = None
    sanitize: bool = False

    @property
    def has_string_rules(self) -> bool:
        return (
            self.min_length is not None
            or self.max_length is not None
            or self.pattern is not None
            or self.sanitize
        )


Schema = Mapping[str, FieldRules]


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate(payload: MutableMapping[str, Any], schema: Schema) -> ValidationResult:
    errors: List[str] = []

    for name, rules in schema.items():
        value = payload.get(name)

        if _is_blank(value):
            if rules.required:
                errors.append(f"{name} is required")
            continue

        if not rules.has_string_rules:
            continue

        if not isinstance(value, str):
            errors.append(f"{name} must be a string")
            continue

        trimmed = value.strip()
        if rules.min_length is not None and len(trimmed) < rules.min_length:
            errors.append(f"{name} must be at least {rules.min_length} characters long")
        if rules.max_length is not None and len(trimmed) > rules.max_length:
            errors.append(f"{name} cannot exceed {rules.max_length} characters")
        if rules.pattern is not None and not rules.pattern.match(trimmed):
            errors.append(f"{name} format is invalid")

        if rules.sanitize:
            payload[name] = sanitize_html(value)

    return ValidationResult(valid=not errors, errors=errors)


# ── Schemas ───────────────────────────────────────────────────────────────

NAME_PATTERN = re.compile(r"^[a-zA-Z\s]+$")
EMAIL_PATTERN = re.compile(r"^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,3})+$")

USER_REGISTRATION_SCHEMA: Dict[str, FieldRules] = {
    "name": FieldRules(required=True, min_length=2, max_length=50, pattern=NAME_PATTERN),
    "email": FieldRules(required=True, pattern=EMAIL_PATTERN),
    "password": FieldRules(required=True, min_length=6, max_length=128),
    "bio": FieldRules(max_length=500, sanitize=True),
}

LOGIN_SCHEMA: Dict[str, FieldRules] = {
    "email": FieldRules(required=True, pattern=EMAIL_PATTERN),
    "password": FieldRules(required=True, max_length=128),
}

PROFILE_UPDATE_SCHEMA: Dict[str, FieldRules] = {
    "name": FieldRules(min_length=2, max_length=50, pattern=NAME_PATTERN),
    "bio": FieldRules(max_length=500, sanitize=True),
    "profileImage": FieldRules(max_length=2048),
}

POST_SCHEMA: Dict[str, FieldRules] = {
    "content": FieldRules(required=True, min_length=1, max_length=1000, sanitize=True),
}

COMMENT_SCHEMA: Dict[str, FieldRules] = {
    "content": FieldRules(required=True, min_length=1, max_length=500, sanitize=True),
}
