"""Field extraction: raw dataset records -> ExportItem.

Each record is handled independently. Mapping rules are walked in order; a rule
whose `from` key is present consumes that key and routes the value to `id`,
`content`, `date` or a metadata key. Every unconsumed string value is then
copied into metadata under its original key.

A record that is not an object, or that cannot resolve both `content` and
`date`, is dropped. Extraction as a whole never fails; it only returns a
possibly shorter list in input order.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

import structlog

from .models import CONTENT_KEY, DATE_KEY, ID_KEY, DateKind, ExportItem, FieldMapping


logger = structlog.get_logger(__name__)


class _SkipRecord(Exception):
    """Internal signal: the current record cannot become an ExportItem."""


def parse_export_date(value: str, fmt: str) -> datetime:
    """Parse `value` with exactly `fmt` and return midnight UTC of that calendar date."""
    parsed = datetime.strptime(value, fmt).date()
    return datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)


def _extract_one(record: Any, mappings: Sequence[FieldMapping]) -> ExportItem:
    if not isinstance(record, dict):
        raise _SkipRecord("record is not a JSON object")

    item_id: Optional[str] = None
    content: Optional[str] = None
    date: Optional[datetime] = None
    metadata: Dict[str, str] = {}
    consumed: Set[str] = set()

    for mapping in mappings:
        if mapping.from_ not in record:
            continue
        value = record[mapping.from_]
        consumed.add(mapping.from_)

        if mapping.to == ID_KEY:
            item_id = value if isinstance(value, str) else None
        elif mapping.to == CONTENT_KEY:
            content = value if isinstance(value, str) else None
        elif mapping.to == DATE_KEY:
            if not isinstance(mapping.kind, DateKind) or not isinstance(value, str):
                raise _SkipRecord(f"'{mapping.from_}' is not a date string")
            try:
                date = parse_export_date(value, mapping.kind.format)
            except ValueError as exc:
                raise _SkipRecord(
                    f"failed to parse date '{value}' with format '{mapping.kind.format}'"
                ) from exc
        elif isinstance(value, str):
            metadata[mapping.to] = value

    # Pass-through enrichment for keys no rule claimed.
    for key, value in record.items():
        if key not in consumed and isinstance(value, str):
            metadata[key] = value

    if content is None:
        raise _SkipRecord("missing 'content' field")
    if date is None:
        raise _SkipRecord("missing or invalid 'date' field")

    return ExportItem(id=item_id, content=content, date=date, metadata=metadata)


def extract_export_items(records: Iterable[Any], mappings: Sequence[FieldMapping]) -> List[ExportItem]:
    """Normalize raw records into export items, dropping unusable ones.

    Args:
        records: Raw dataset records as decoded from JSON.
        mappings: Ordered field mapping rules.

    Returns:
        ExportItems in input order, minus dropped records.
    """
    out: List[ExportItem] = []
    skipped = 0
    for index, record in enumerate(records):
        try:
            out.append(_extract_one(record, mappings))
        except _SkipRecord as exc:
            skipped += 1
            logger.debug("record_skipped", index=index, reason=str(exc))

    if skipped:
        logger.info("records_skipped", skipped=skipped, kept=len(out))
    return out
