import csv
from io import StringIO
from typing import Iterable

from callscreen.models import CallRecord

CSV_COLUMNS = [
    "conversation_id",
    "agent_id",
    "created_at",
    "first_name",
    "last_name",
    "phone",
    "status",
    "qualification",
    "call_duration",
]


def calls_to_csv(records: Iterable[CallRecord]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_COLUMNS)
    for record in records:
        extracted = record.extracted_data or {}
        writer.writerow(
            [
                record.conversation_id,
                record.agent_id,
                record.created_at.isoformat(),
                record.first_name,
                record.last_name,
                record.phone,
                record.status,
                record.qualification.value,
                extracted.get("call_duration"),
            ]
        )
    return output.getvalue()
