"""Exceptions raised by the student import pipeline.

Per-row problems are never raised: they are collected as ValidationError and
CommitError records on the session. Only file-level, limit and state-machine
problems surface as exceptions.
"""
from typing import Optional


class StudentImportError(Exception):
    pass


class ParseError(StudentImportError):
    pass


class UnsupportedFileTypeError(ParseError):
    pass


class ImportLimitError(StudentImportError):
    pass


class FileTooLargeError(ImportLimitError):
    def __init__(self, size_bytes: int, max_mb: int):
        self.size_bytes = size_bytes
        self.max_mb = max_mb
        super().__init__(f"File is too large (max {max_mb}MB). Please split it into smaller files.")


class TooManyRowsError(ImportLimitError):
    def __init__(self, row_count: int, max_rows: int):
        self.row_count = row_count
        self.max_rows = max_rows
        super().__init__(
            f"File contains {row_count} rows, more than the limit of {max_rows}. "
            "Please split into smaller files."
        )


class InvalidTransitionError(StudentImportError):
    def __init__(self, current: str, attempted: str, detail: Optional[str] = None):
        self.current = current
        self.attempted = attempted
        message = f"Cannot {attempted} while import is in '{current}' step"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class MappingIncompleteError(StudentImportError):
    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Required fields are not mapped: {', '.join(missing)}")


class NoValidRowsError(StudentImportError):
    def __init__(self):
        super().__init__("No valid data found. Please check your mappings.")


class MappingError(StudentImportError):
    pass


class UnknownColumnError(MappingError):
    def __init__(self, column: str):
        self.column = column
        super().__init__(f"Unknown source column: '{column}'")


class InvalidTargetFieldError(MappingError):
    def __init__(self, target: str):
        self.target = target
        super().__init__(f"Unknown target field: '{target}'")


class SessionNotFoundError(StudentImportError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__("Invalid or expired import session. Please upload the file again.")
