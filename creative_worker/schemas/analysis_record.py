# creative_worker/schemas/analysis_record.py
"""
Versioned document layout for persisted analysis records.

Records are stored as native nested documents (camelCase keys) tagged with
``schemaVersion``. Reading a document validates it in full, so a partial or
garbled record surfaces as RecordSchemaError instead of quietly turning into
empty defaults.
"""
from typing import Any, Dict

from pydantic import ValidationError

from creative_worker.dto import AnalysisRecord
from creative_worker.errors import RecordSchemaError

SCHEMA_VERSION = 1
SCHEMA_VERSION_KEY = "schemaVersion"


def to_document(record: AnalysisRecord) -> Dict[str, Any]:
    doc = record.model_dump(mode="json", by_alias=True)
    doc[SCHEMA_VERSION_KEY] = SCHEMA_VERSION
    return doc


def from_document(doc: Dict[str, Any]) -> AnalysisRecord:
    version = doc.get(SCHEMA_VERSION_KEY)
    if version != SCHEMA_VERSION:
        raise RecordSchemaError(
            f"Unsupported analysis record schema version {version!r} "
            f"(expected {SCHEMA_VERSION})"
        )
    body = {k: v for k, v in doc.items() if k != SCHEMA_VERSION_KEY}

    # every field is written on each replace, so a missing key means a
    # truncated or foreign document
    expected = {f.alias or name for name, f in AnalysisRecord.model_fields.items()}
    missing = sorted(expected - body.keys())
    if missing:
        raise RecordSchemaError(f"Analysis record is missing fields: {', '.join(missing)}")

    try:
        return AnalysisRecord.model_validate(body)
    except ValidationError as e:
        raise RecordSchemaError(f"Malformed analysis record: {e}") from e
