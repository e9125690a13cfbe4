from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from ..models.validation_error import ErrorKind, ValidationError, display_value

"""Validation rule types.

Rules are evaluated per row in phases:

1. PRESENCE   - Required
2. FORMAT     - OneOf / Boolean / Number / Integer
3. CROSS      - ExactlyOne
4. REFERENCE  - Reference (skipped once the row failed phases 1-3)
5. DUPLICATE  - UniqueInSheet / ExistsInStore (evaluated by the engine, they
                need the whole sheet or the store)

Row-local rules receive a RowContext, append errors to it and write the
normalized value (canonical enum spelling, parsed number, bool) into
ctx.values so the record mapper never re-parses cell text.
"""

__all__ = [
    "PRESENCE",
    "FORMAT",
    "CROSS",
    "REFERENCE",
    "DUPLICATE",
    "RowContext",
    "Rule",
    "Required",
    "OneOf",
    "Boolean",
    "Number",
    "Integer",
    "ExactlyOne",
    "Reference",
    "UniqueInSheet",
    "ExistsInStore",
    "cell_text",
    "is_blank",
]

PRESENCE = 1
FORMAT = 2
CROSS = 3
REFERENCE = 4
DUPLICATE = 5


def cell_text(value: Any) -> str:
    """Text of a cell used for comparisons and lookups ("" when blank).

    Integral floats lose their ".0" so that a code typed as 1 in Excel matches
    the text "1" stored remotely.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def is_blank(value: Any) -> bool:
    return cell_text(value) == ""


@dataclass
class RowContext:
    row_number: int
    raw: dict[str, Any]
    values: dict[str, Any] = field(default_factory=dict)
    references: dict[str, Any] = field(default_factory=dict)
    errors: list[ValidationError] = field(default_factory=list)

    @classmethod
    def for_row(cls, row_number: int, raw: dict[str, Any]) -> RowContext:
        values = {k: (v.strip() if isinstance(v, str) else v) for k, v in raw.items()}
        return cls(row_number=row_number, raw=raw, values=values)

    def fail(self, field_name: str, message: str, value: Any = None, kind: ErrorKind = ErrorKind.FIELD) -> None:
        self.errors.append(
            ValidationError(
                row=self.row_number,
                field=field_name,
                value=display_value(value),
                message=message,
                kind=kind,
            )
        )


class Rule:
    phase: int = FORMAT

    def check(self, ctx: RowContext) -> None:  # pragma: no cover (overridden)
        raise NotImplementedError


@dataclass(frozen=True)
class Required(Rule):
    field: str
    message: str = ""
    phase: int = PRESENCE

    def check(self, ctx: RowContext) -> None:
        if is_blank(ctx.raw.get(self.field)):
            ctx.fail(self.field, self.message or f"{self.field} is required", "")


@dataclass(frozen=True)
class OneOf(Rule):
    """Value must match one of `allowed` (trimmed, case-insensitive).

    The canonical spelling from `allowed` replaces the cell value. A blank
    cell fails unless optional=True, in which case `default` is used.
    """
    field: str
    allowed: tuple[Any, ...]
    message: str = ""
    optional: bool = False
    default: Any = None
    phase: int = FORMAT

    def _lookup(self) -> dict[str, Any]:
        return {cell_text(a).lower(): a for a in self.allowed}

    def check(self, ctx: RowContext) -> None:
        raw = ctx.raw.get(self.field)
        if is_blank(raw) and self.optional:
            ctx.values[self.field] = self.default
            return
        canonical = self._lookup().get(cell_text(raw).lower())
        if canonical is None:
            allowed = ", ".join(f'"{cell_text(a)}"' for a in self.allowed)
            ctx.fail(self.field, self.message or f"{self.field} must be one of {allowed}", raw)
            return
        ctx.values[self.field] = canonical


class Boolean(OneOf):
    """TRUE/FALSE column stored as a Python bool."""

    def __init__(self, field: str, message: str = "", optional: bool = False, default: Any = None) -> None:
        super().__init__(
            field=field,
            allowed=("TRUE", "FALSE"),
            message=message or f'{field} must be "TRUE" or "FALSE"',
            optional=optional,
            default=default,
        )

    def check(self, ctx: RowContext) -> None:
        before = len(ctx.errors)
        super().check(ctx)
        if len(ctx.errors) == before and isinstance(ctx.values.get(self.field), str):
            ctx.values[self.field] = ctx.values[self.field] == "TRUE"


def parse_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    text = str(value).strip()
    if not text:
        return None
    if "," in text and "." not in text:
        text = text.replace(",", ".")
    try:
        number = float(text)
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


@dataclass(frozen=True)
class Number(Rule):
    field: str
    message: str = ""
    required: bool = True
    minimum: float | None = None
    default: Any = None
    phase: int = FORMAT

    def check(self, ctx: RowContext) -> None:
        raw = ctx.raw.get(self.field)
        if is_blank(raw) and not self.required:
            ctx.values[self.field] = self.default
            return
        number = parse_number(raw)
        if number is None or (self.minimum is not None and number < self.minimum):
            ctx.fail(self.field, self.message or f"{self.field} must be a valid number", raw)
            return
        ctx.values[self.field] = number


@dataclass(frozen=True)
class Integer(Rule):
    field: str
    minimum: int | None = None
    maximum: int | None = None
    digits: int | None = None
    message: str = ""
    phase: int = FORMAT

    def check(self, ctx: RowContext) -> None:
        raw = ctx.raw.get(self.field)
        number = parse_number(raw)
        ok = number is not None and number.is_integer()
        if ok:
            value = int(number)
            if self.minimum is not None and value < self.minimum:
                ok = False
            if self.maximum is not None and value > self.maximum:
                ok = False
            if self.digits is not None and len(str(abs(value))) != self.digits:
                ok = False
        if not ok:
            ctx.fail(self.field, self.message or f"{self.field} must be an integer", raw)
            return
        ctx.values[self.field] = int(number)


@dataclass(frozen=True)
class ExactlyOne(Rule):
    """Exactly one of `fields` must be filled; any other count is one error."""
    fields: tuple[str, ...]
    error_field: str
    message_none: str
    message_many: str
    phase: int = CROSS

    def check(self, ctx: RowContext) -> None:
        filled = [f for f in self.fields if not is_blank(ctx.raw.get(f))]
        if not filled:
            ctx.fail(self.error_field, self.message_none, "")
        elif len(filled) > 1:
            ctx.fail(self.error_field, self.message_many, ", ".join(filled))


@dataclass(frozen=True)
class Reference(Rule):
    """Natural-key reference resolved against the store.

    field: spreadsheet column holding the natural key
    table / key_column: where the key lives remotely
    target: record column that receives the resolved id (e.g. "empresa_id")
    """
    field: str
    table: str
    key_column: str
    target: str
    message: str = ""
    optional: bool = False
    id_column: str = "id"
    phase: int = REFERENCE

    def resolve(self, ctx: RowContext, index: Any) -> None:
        raw = ctx.raw.get(self.field)
        if is_blank(raw):
            if self.optional:
                ctx.references[self.target] = None
            return
        matches = index.lookup(self.table, self.key_column, cell_text(raw), id_column=self.id_column)
        if len(matches) == 1:
            ctx.references[self.target] = matches[0]
            return
        if not matches:
            message = self.message or f"{self.field} not found"
        else:
            message = f"{self.field} matches more than one record"
        ctx.fail(self.field, message, raw, kind=ErrorKind.REFERENTIAL)

    def peek(self, ctx: RowContext, index: Any) -> Any:
        """Resolved id for the row's key without recording errors.

        Returns None when the key is blank, unknown or ambiguous.
        """
        raw = ctx.raw.get(self.field)
        if is_blank(raw):
            return None
        matches = index.lookup(self.table, self.key_column, cell_text(raw), id_column=self.id_column)
        return matches[0] if len(matches) == 1 else None


@dataclass(frozen=True)
class UniqueInSheet(Rule):
    """Natural key (one or more columns) must not repeat inside the sheet.

    The key is read from normalized values, so "01" and 1 in an Integer
    column are the same month.
    """
    fields: tuple[str, ...]
    error_field: str
    message: str
    phase: int = DUPLICATE

    def key(self, values: dict[str, Any]) -> tuple[str, ...] | None:
        parts = tuple(cell_text(values.get(f)) for f in self.fields)
        if any(p == "" for p in parts):
            return None
        return parts


@dataclass(frozen=True)
class ExistsInStore(Rule):
    """Row whose key already exists remotely.

    match maps store column -> row source. A source naming a resolved
    reference target (e.g. "pessoa_id") reads ctx.references, otherwise the
    normalized row value is used.
    """
    table: str
    match: tuple[tuple[str, str], ...]
    error_field: str
    message: str
    phase: int = DUPLICATE

    @property
    def store_columns(self) -> tuple[str, ...]:
        return tuple(column for column, _ in self.match)

    def key(self, ctx: RowContext, references: dict[str, Any] | None = None) -> tuple[str, ...] | None:
        """Store lookup key for the row, or None while any part is blank.

        Args:
            ctx: Row context after the row-local rules ran
            references: Resolved ids to use instead of ctx.references
        """
        refs = ctx.references if references is None else references
        parts = []
        for _, source in self.match:
            value = refs[source] if source in refs else ctx.values.get(source)
            parts.append(cell_text(value))
        if any(p == "" for p in parts):
            return None
        return tuple(parts)
