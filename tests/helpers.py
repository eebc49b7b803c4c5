"""File builders for upload tests."""
import io
from typing import Any, List, Optional, Sequence

import openpyxl


def make_csv(header: Sequence[str], rows: List[Sequence[str]]) -> bytes:
    lines = [",".join(header)] + [",".join(row) for row in rows]
    return ("\n".join(lines) + "\n").encode("utf-8")


def make_xlsx(rows: List[Sequence[Any]], extra_sheet_rows: Optional[List[Sequence[Any]]] = None) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Students"
    for row in rows:
        ws.append(list(row))
    if extra_sheet_rows is not None:
        other = wb.create_sheet("Other")
        for row in extra_sheet_rows:
            other.append(list(row))
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
