"""Editable column mapping table with the required-field gate"""
from typing import Iterable, List, Optional, Set

from src.classboom.schemas.student_import import (
    ColumnMapping,
    TargetField,
    IGNORE,
    DEFAULT_REQUIRED_FIELDS,
)
from src.classboom.services.errors import UnknownColumnError, InvalidTargetFieldError


def coerce_target_field(target_field: str) -> str:
    if target_field == IGNORE:
        return IGNORE
    try:
        return TargetField(target_field).value
    except ValueError:
        raise InvalidTargetFieldError(target_field)


class MappingEditor:
    """Holds the current mapping table for one import session.

    The table keeps one entry per source column in header order; edits replace
    the entry for a column in place.
    """

    def __init__(self, mappings: Iterable[ColumnMapping], required_fields: Optional[Iterable[str]] = None):
        self.mappings: List[ColumnMapping] = list(mappings)
        self.required_fields: Set[str] = (
            set(required_fields) if required_fields is not None else set(DEFAULT_REQUIRED_FIELDS)
        )

    def update_mapping(self, source_column: str, target_field: str) -> ColumnMapping:
        target = coerce_target_field(target_field)
        for idx, mapping in enumerate(self.mappings):
            if mapping.source_column == source_column:
                updated = ColumnMapping(source_column=source_column, target_field=target)
                self.mappings[idx] = updated
                return updated
        raise UnknownColumnError(source_column)

    def mapped_fields(self) -> Set[str]:
        return {m.target_value for m in self.mappings if not m.is_ignored}

    def missing_required_fields(self) -> List[str]:
        return sorted(self.required_fields - self.mapped_fields())

    def is_ready_to_proceed(self) -> bool:
        return self.mapped_fields() >= self.required_fields
