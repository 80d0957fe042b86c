"""Data models for the connector.

The connector owns a *stable* export schema regardless of which actor produced
the raw dataset. Requests arrive as JSON documents, so every model here is a
Pydantic v2 model that validates on the way in and serializes on the way out.

`FieldMapping.kind` accepts both the tagged form (`{"type": "date", "format": ...}`)
and the externally tagged form used by existing job documents
(`"String"` / `{"Date": {"format": ...}}`).
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


EXPORT_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Field mapping targets with dedicated handling; anything else is a metadata key.
ID_KEY = "id"
CONTENT_KEY = "content"
DATE_KEY = "date"


class StringKind(BaseModel):
    """Value is taken as-is when it is a string."""

    type: Literal["string"] = "string"


class DateKind(BaseModel):
    """Value is a calendar date string parsed with an exact strftime pattern."""

    type: Literal["date"] = "date"
    format: str = Field(..., description="strptime pattern, e.g. '%Y-%m-%d'.")


MappingKind = Annotated[Union[StringKind, DateKind], Field(discriminator="type")]


class FieldMapping(BaseModel):
    """Maps one key of a raw record onto the export item."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_: str = Field(..., alias="from")
    to: str
    kind: MappingKind = Field(default_factory=StringKind)

    @field_validator("kind", mode="before")
    @classmethod
    def _externally_tagged_kind(cls, value: Any) -> Any:
        if value == "String":
            return {"type": "string"}
        if isinstance(value, dict) and "Date" in value:
            inner = value["Date"] or {}
            return {"type": "date", "format": inner.get("format")}
        return value


class StateMappingRule(BaseModel):
    """One rule of the state mapping.

    `update` starting with `$` is a formula; anything else is a literal copy.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_: str = Field(..., alias="from")
    to: str
    update: str


class ExportItem(BaseModel):
    """A normalized export record.

    `content` and `date` are required: records that cannot resolve them are
    dropped during extraction instead of being represented with nulls.
    """

    id: Optional[str] = None
    content: str
    date: datetime
    metadata: Dict[str, str] = Field(default_factory=dict)

    @field_serializer("date")
    def _serialize_date(self, value: datetime) -> str:
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        # strftime leaves years below 1000 unpadded on some platforms.
        return f"{value.year:04d}" + value.strftime(EXPORT_DATE_FORMAT[2:])


class RunStatus(str, Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RemoteRun(BaseModel):
    """Handle to one in-flight remote job."""

    run_id: str = Field(..., description="Remote run identifier.")
    dataset_id: str = Field(..., description="Identifier of the result set the run writes to.")
    status: RunStatus = RunStatus.RUNNING


class JobRequest(BaseModel):
    """Everything one orchestration run needs, assembled by the boundary layer."""

    model_config = ConfigDict(frozen=True)

    target: str = Field(..., description="Remote actor identity, e.g. 'apify/web-scraper'.")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Actor input body.")
    field_mappings: List[FieldMapping] = Field(default_factory=list)
    state_mappings: List[StateMappingRule] = Field(default_factory=list)
    previous_state: str = Field(default="{}", description="JSON-encoded state from the previous run.")


class JobResponse(BaseModel):
    """Complete result of a successful run: new state blob plus exported items."""

    state: str
    result: List[ExportItem] = Field(default_factory=list)
