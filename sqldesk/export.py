"""Export of an ExecutionResult to CSV, JSON or Excel."""

import csv
import json
import logging
from datetime import date, datetime, time
from decimal import Decimal

import openpyxl

logger = logging.getLogger(__name__)

FORMATS = ("csv", "json", "xlsx")


def _cell_text(value):
    return "" if value is None else str(value)


def _excel_value(value):
    if value is None or isinstance(value, (str, int, float, bool, datetime, date, time)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    return str(value)


def export_result(result, filename, fmt=None):
    """Write ``result`` to ``filename``. Returns the path written.

    The format defaults to the file extension; the extension is appended
    when it is missing.
    """
    filename = str(filename)
    if fmt is None:
        fmt = filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''
    if fmt not in FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")

    # Ensure extension
    if not filename.endswith(f".{fmt}"):
        filename += f".{fmt}"

    headers = list(result.columns)
    rows = [[row.get(col) for col in headers] for row in result.rows]

    if fmt == 'csv':
        with open(filename, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(headers)
            writer.writerows([[_cell_text(v) for v in row] for row in rows])

    elif fmt == 'json':
        data = [dict(zip(headers, row)) for row in rows]
        with open(filename, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, default=str)

    elif fmt == 'xlsx':
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(headers)
        for row in rows:
            ws.append([_excel_value(v) for v in row])
        wb.save(filename)

    logger.info(f"Exported {len(rows)} row(s) to {filename}")
    return filename
