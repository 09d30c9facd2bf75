"""Shared response pieces — side-effect warnings and UTC timestamp output.

Design Decisions:
    - UtcDatetime re-attaches UTC to values read back from SQLite, so every
      instant leaves the API as an aware ISO-8601 string
"""

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, PlainSerializer

from marketcore.core.scheduling import as_utc

UtcDatetime = Annotated[
    datetime, PlainSerializer(lambda v: as_utc(v).isoformat(), return_type=str),
]


class WarningResponse(BaseModel):
    """A side effect that failed after the primary change committed."""
    entity_kind: str
    entity_id: str
    new_state: str
    message: str
