"""Shared schema base — camelCase wire format over snake_case Python fields.

Invariants:
    - Request bodies accept camelCase (wire) and snake_case (tests, internal callers)
    - Datetimes are serialized as ISO 8601 strings, naive values treated as UTC

Design Decisions:
    - alias_generator=to_camel instead of per-field aliases: one rule for every model
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from meethalf.core.arrival import as_utc


class CamelModel(BaseModel):
    """Request model whose JSON keys are camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return as_utc(value).isoformat()
