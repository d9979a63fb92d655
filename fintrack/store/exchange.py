"""
Transaction import and export.

CSV export carries a UTF-8 byte-order mark so spreadsheet tools open
Vietnamese text correctly. CSV import is strict: one bad row rejects
the whole file, and nothing reaches the store.
"""

import csv
import io
import json
from typing import Iterable, Optional

from pydantic import ValidationError

from fintrack.models.finance import Transaction, TransactionData, TransactionType


EXPORT_COLUMNS = ["id", "date", "description", "category", "amount", "type"]
IMPORT_COLUMNS = ["date", "description", "category", "amount", "type"]

BOM = "\ufeff"


class CsvImportError(ValueError):
    """The CSV text cannot be imported. `line` is 1-based, None for the header."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


def _format_amount(amount: float) -> str:
    return str(int(amount)) if float(amount).is_integer() else repr(float(amount))


def export_transactions_csv(transactions: Iterable[Transaction]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for t in transactions:
        writer.writerow([
            t.id,
            t.date.isoformat(),
            t.description,
            t.category,
            _format_amount(t.amount),
            t.type.value,
        ])
    return BOM + buffer.getvalue()


def export_transactions_json(transactions: Iterable[Transaction]) -> str:
    """Same shape as the transactions slot, indented for reading."""
    return json.dumps(
        [t.to_slot_dict() for t in transactions],
        ensure_ascii=False,
        indent=2,
    )


def parse_transactions_csv(text: str) -> list[TransactionData]:
    """
    Parse `date,description,category,amount,type` rows.

    Blank lines are skipped. Every row needs all five values and a type
    of INCOME or EXPENSE.

    Raises:
        CsvImportError: On a wrong header or the first bad row
    """
    if text.startswith(BOM):
        text = text[len(BOM):]

    rows = [
        (number, row)
        for number, row in enumerate(csv.reader(io.StringIO(text)), start=1)
        if any(cell.strip() for cell in row)
    ]
    if not rows:
        raise CsvImportError("file is empty")

    _, header = rows[0]
    if [cell.strip() for cell in header] != IMPORT_COLUMNS:
        raise CsvImportError(
            f"header must be {','.join(IMPORT_COLUMNS)}, got {','.join(header)}"
        )

    parsed = []
    for number, row in rows[1:]:
        values = [cell.strip() for cell in row]
        if len(values) != len(IMPORT_COLUMNS) or not all(values):
            raise CsvImportError(f"expected 5 non-empty values: {','.join(row)}", number)

        date_text, description, category, amount_text, type_text = values
        if type_text not in {t.value for t in TransactionType}:
            raise CsvImportError(f"invalid transaction type '{type_text}'", number)
        try:
            amount = float(amount_text)
        except ValueError:
            raise CsvImportError(f"invalid amount '{amount_text}'", number)

        try:
            parsed.append(TransactionData(
                date=date_text,
                description=description,
                category=category,
                amount=amount,
                type=TransactionType(type_text),
            ))
        except ValidationError as e:
            raise CsvImportError(f"invalid row ({e.errors()[0]['msg']})", number)

    return parsed
