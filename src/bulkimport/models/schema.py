"""Import schema models: the declarative description of one import kind.

An ``ImportSchema`` names the headers a file must (and may) carry, maps each
normalized header onto a canonical field, and attaches validation rules to
those fields. Host features supply a schema; the engine does the rest.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from bulkimport.ingest.headers import normalize_header

FieldType = Literal["string", "number", "boolean", "date"]


class RequiredRule(BaseModel):
    """Field must carry a non-empty value."""

    model_config = {"frozen": True}

    kind: Literal["required"] = "required"


class RegexRule(BaseModel):
    """Non-empty value must fully match ``pattern``."""

    model_config = {"frozen": True}

    kind: Literal["regex"] = "regex"
    pattern: str
    message: str = ""


class NumericRangeRule(BaseModel):
    """Non-empty numeric value must fall inside [min, max]."""

    model_config = {"frozen": True}

    kind: Literal["numeric_range"] = "numeric_range"
    min: Optional[float] = None
    max: Optional[float] = None


class EnumRule(BaseModel):
    """Non-empty value must be one of ``allowed``."""

    model_config = {"frozen": True}

    kind: Literal["enum"] = "enum"
    allowed: tuple[str, ...]
    case_sensitive: bool = True


class TypeRule(BaseModel):
    """Declares the coercion applied by the row mapper."""

    model_config = {"frozen": True}

    kind: Literal["type"] = "type"
    type: FieldType = "string"


Rule = Annotated[
    Union[RequiredRule, RegexRule, NumericRangeRule, EnumRule, TypeRule],
    Field(discriminator="kind"),
]


class ImportSchema(BaseModel):
    """Static, immutable description of an import kind."""

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    kind: str
    required_headers: tuple[str, ...]
    optional_headers: tuple[str, ...] = ()
    field_map: dict[str, str]  # normalized header -> canonical field
    field_rules: dict[str, list[Rule]] = Field(default_factory=dict)
    labels: dict[str, str] = Field(default_factory=dict)  # field -> display label
    defaults: dict[str, Any] = Field(default_factory=dict)
    row_identity: Optional[Callable[[dict[str, Any]], Optional[str]]] = None
    identity_label: str = ""
    transport: Literal["xlsx", "json"] = "json"
    json_key: Optional[str] = None
    form_fields: dict[str, str] = Field(default_factory=dict)  # sent alongside xlsx uploads
    example_row: dict[str, Any] = Field(default_factory=dict)  # header -> example

    @classmethod
    def build(
        cls,
        kind: str,
        *,
        required: Mapping[str, str],
        optional: Mapping[str, str] | None = None,
        rules: Mapping[str, Sequence[Any]] | None = None,
        blank_ok: Sequence[str] = (),
        aliases: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> ImportSchema:
        """Build a schema from ``{header text: canonical field}`` mappings.

        Field declaration order follows ``required`` then ``optional``; the
        header text doubles as the field's display label. Fields under a
        required header get a ``RequiredRule`` unless listed in ``blank_ok``
        (column must exist, cells may be empty). ``aliases`` maps extra header
        spellings onto fields without changing their labels.
        """
        optional = optional or {}
        field_map: dict[str, str] = {}
        labels: dict[str, str] = {}
        for header, field in [*required.items(), *optional.items()]:
            field_map[normalize_header(header)] = field
            labels.setdefault(field, header)
        for header, field in (aliases or {}).items():
            field_map.setdefault(normalize_header(header), field)
        # Canonical names are accepted as headers too (cleaned re-exports use them).
        for field in list(field_map.values()):
            field_map.setdefault(normalize_header(field), field)

        field_rules: dict[str, list[Any]] = {}
        rules = rules or {}
        for field in dict.fromkeys(field_map.values()):
            field_rules[field] = list(rules.get(field, ()))
        for field in required.values():
            if field in blank_ok:
                continue
            if not any(isinstance(r, RequiredRule) for r in field_rules[field]):
                field_rules[field].insert(0, RequiredRule())

        return cls(
            kind=kind,
            required_headers=tuple(required),
            optional_headers=tuple(optional),
            field_map=field_map,
            field_rules=field_rules,
            labels=labels,
            **kwargs,
        )

    @property
    def fields(self) -> list[str]:
        """Canonical fields in declaration order."""
        return list(dict.fromkeys(self.field_map.values()))

    @property
    def headers(self) -> list[str]:
        return [*self.required_headers, *self.optional_headers]

    def label(self, field: str) -> str:
        return self.labels.get(field, field)

    def rules_for(self, field: str) -> list[Any]:
        return list(self.field_rules.get(field, ()))

    def field_type(self, field: str) -> FieldType:
        for rule in self.rules_for(field):
            if isinstance(rule, TypeRule):
                return rule.type
        return "string"

    def enum_rule(self, field: str) -> EnumRule | None:
        for rule in self.rules_for(field):
            if isinstance(rule, EnumRule):
                return rule
        return None

    def is_required(self, field: str) -> bool:
        return any(isinstance(r, RequiredRule) for r in self.rules_for(field))
