"""CSV and Excel renderings of generated reports."""

import csv
import io
import json
from typing import Any, Dict, Iterable, List

from openpyxl import Workbook
from openpyxl.styles import Font


def flatten(value: Any, prefix: str = '') -> Dict[str, Any]:
    """Flatten nested dicts into dotted keys; lists become JSON strings."""
    if isinstance(value, dict):
        flat: Dict[str, Any] = {}
        for key, item in value.items():
            name = f"{prefix}.{key}" if prefix else str(key)
            flat.update(flatten(item, name))
        return flat
    if isinstance(value, list):
        return {prefix: json.dumps(value, default=str)}
    return {prefix: value}


def _fieldnames(rows: Iterable[Dict[str, Any]]) -> List[str]:
    names: List[str] = []
    for row in rows:
        for key in row:
            if key not in names:
                names.append(key)
    return names


def report_rows(document: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Detail rows of a report document, or its flattened summary when it has none."""
    details = document.get('details') or []
    if details:
        return [flatten(row) for row in details]
    return [{'metric': key, 'value': value} for key, value in flatten(document.get('summary') or {}).items()]


def to_csv(document: Dict[str, Any]) -> str:
    rows = report_rows(document)
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=_fieldnames(rows), extrasaction='ignore')
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue()


def to_excel(document: Dict[str, Any]) -> bytes:
    """Workbook with a Summary sheet (metadata and summary) and a Details sheet."""
    workbook = Workbook()
    summary = workbook.active
    summary.title = 'Summary'
    bold = Font(bold=True)

    summary.append(['Field', 'Value'])
    for cell in summary[1]:
        cell.font = bold
    for key, value in flatten(document.get('metadata') or {}, 'metadata').items():
        summary.append([key, _cell(value)])
    for key, value in flatten(document.get('summary') or {}, 'summary').items():
        summary.append([key, _cell(value)])

    details = workbook.create_sheet('Details')
    rows = [flatten(row) for row in document.get('details') or []]
    names = _fieldnames(rows)
    if names:
        details.append(names)
        for cell in details[1]:
            cell.font = bold
        for row in rows:
            details.append([_cell(row.get(name)) for name in names])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _cell(value: Any) -> Any:
    if value is None or isinstance(value, (int, float, str, bool)):
        return value
    return str(value)
