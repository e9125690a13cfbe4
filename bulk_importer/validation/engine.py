from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ..models.session import ValidatedRow
from ..models.validation_error import FIRST_DATA_ROW, ErrorKind, ValidationError, display_value
from ..store.base import DataStore, StoreError
from .reference_index import ReferenceIndex
from .rules import ExistsInStore, Reference, RowContext, UniqueInSheet

"""Row validation engine.

validate_rows() runs a profile's rules over every decoded row and returns all
errors at once. Per row the phases run in order (presence, format, cross-field,
references, duplicates); the reference phase is skipped for a row that
already failed an earlier phase, so a missing code does not also report
"not found".

Duplicate checks run on every row in a second pass: sheet keys compare
normalized values, and existing-record lookups resolve their own references
when the reference phase was skipped. A row that already has errors gets an
existing-record match as a DUPLICATE error whatever the policy.

On-existing policies for ExistsInStore matches:
    error  -> DUPLICATE error, blocks upload
    skip   -> DUPLICATE notice in store_duplicates, row left out of upload
    update -> row uploaded as an update of the existing record
"""

__all__ = [
    "ON_EXISTING_ERROR",
    "ON_EXISTING_SKIP",
    "ON_EXISTING_UPDATE",
    "ValidationOutcome",
    "validate_rows",
]

logger = logging.getLogger(__name__)

ON_EXISTING_ERROR = "error"
ON_EXISTING_SKIP = "skip"
ON_EXISTING_UPDATE = "update"


@dataclass
class ValidationOutcome:
    errors: list[ValidationError] = field(default_factory=list)
    validated_rows: list[ValidatedRow] = field(default_factory=list)
    store_duplicates: list[ValidationError] = field(default_factory=list)


def _sheet_duplicates(rule: UniqueInSheet, contexts: Sequence[RowContext]) -> set[int]:
    """Indexes of every row whose normalized key appears more than once."""
    seen: dict[tuple[str, ...], list[int]] = {}
    for i, ctx in enumerate(contexts):
        key = rule.key(ctx.values)
        if key is not None:
            seen.setdefault(key, []).append(i)
    return {i for positions in seen.values() if len(positions) > 1 for i in positions}


def _existence_key(
    rule: ExistsInStore,
    ctx: RowContext,
    by_target: dict[str, Reference],
    index: ReferenceIndex,
) -> tuple[str, ...] | None:
    """Key for an existing-record lookup, even when the row has other errors.

    References skipped after an earlier failure are resolved quietly here; a
    key part whose own column failed gives no key.
    """
    failed = {e.field for e in ctx.errors}
    refs = dict(ctx.references)
    for _, source in rule.match:
        if source in refs:
            continue
        ref = by_target.get(source)
        if ref is not None:
            refs[source] = ref.peek(ctx, index)
        elif source in failed:
            return None
    return rule.key(ctx, refs)


def validate_rows(
    rows: Sequence[dict[str, Any]],
    profile: Any,
    store: DataStore,
    on_existing: str | None = None,
) -> ValidationOutcome:
    """Validate decoded rows against an entity profile.

    Parameters
    ----------
    rows: Decoded rows (header -> cell) in spreadsheet order
    profile: EntityProfile supplying rules and the default on_existing policy
    store: Data store used for reference and existing-record lookups
    on_existing: Optional override of profile.on_existing

    Returns
    -------
    ValidationOutcome: errors in row order, rows ready for upload and the
    informational store duplicates
    """
    policy = on_existing or profile.on_existing
    outcome = ValidationOutcome()
    rules = list(profile.rules)

    try:
        index = ReferenceIndex.build(store, rules)
    except StoreError as e:
        logger.debug("reference prefetch failed: %s", e)
        outcome.errors.append(
            ValidationError(row=0, field="validation", value="", message=str(e), kind=ErrorKind.REFERENTIAL)
        )
        return outcome
    logger.debug("reference index built with %d queries", index.queries)

    local_rules = sorted(
        (r for r in rules if not isinstance(r, (Reference, UniqueInSheet, ExistsInStore))),
        key=lambda r: r.phase,
    )
    references = [r for r in rules if isinstance(r, Reference)]
    by_target = {r.target: r for r in references}
    exists_rules = [r for r in rules if isinstance(r, ExistsInStore)]

    # Pass 1: row-local rules and references
    contexts: list[RowContext] = []
    for i, raw in enumerate(rows):
        ctx = RowContext.for_row(i + FIRST_DATA_ROW, raw)
        for rule in local_rules:
            rule.check(ctx)
        if not ctx.errors:
            for ref in references:
                ref.resolve(ctx, index)
        contexts.append(ctx)

    # Pass 2: duplicates need every row normalized
    unique_rules = [(r, _sheet_duplicates(r, contexts)) for r in rules if isinstance(r, UniqueInSheet)]
    for i, ctx in enumerate(contexts):
        raw = ctx.raw
        for rule, duplicated in unique_rules:
            if i in duplicated:
                ctx.fail(rule.error_field, rule.message, raw.get(rule.error_field), kind=ErrorKind.DUPLICATE)

        existing_id = None
        skipped = False
        for rule in exists_rules:
            key = _existence_key(rule, ctx, by_target, index)
            found = index.existing_id(rule, key) if key is not None else None
            if found is None:
                continue
            notice = ValidationError(
                row=ctx.row_number,
                field=rule.error_field,
                value=display_value(raw.get(rule.error_field)),
                message=rule.message,
                kind=ErrorKind.DUPLICATE,
            )
            if ctx.errors or policy == ON_EXISTING_ERROR:
                ctx.errors.append(notice)
            elif policy == ON_EXISTING_SKIP:
                outcome.store_duplicates.append(notice)
                skipped = True
            else:
                existing_id = found

        outcome.errors.extend(ctx.errors)
        if not ctx.errors and not skipped:
            outcome.validated_rows.append(
                ValidatedRow(
                    row_number=ctx.row_number,
                    values=ctx.values,
                    references=ctx.references,
                    existing_id=existing_id,
                )
            )

    logger.debug(
        "validated entity=%s rows=%d errors=%d ready=%d skipped=%d",
        profile.name,
        len(rows),
        len(outcome.errors),
        len(outcome.validated_rows),
        len(outcome.store_duplicates),
    )
    return outcome
