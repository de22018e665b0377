"""
Per-document conversion output: status, document and side-channel reports.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .document import Document


class ConversionStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class QuarantineReason(str, Enum):
    DENYLISTED_ELEMENT = "denylisted_element"
    EVENT_HANDLER_ATTRIBUTE = "event_handler_attribute"
    UNSAFE_URL = "unsafe_url"


class QuarantinedNode(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    raw_markup: str = Field(..., alias="rawMarkup")
    position_path: List[int] = Field(default_factory=list, alias="positionPath")
    reason: QuarantineReason
    tag: Optional[str] = None


class UnmappedTag(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tag: str
    count: int = Field(1, ge=1)
    sample_attrs: Dict[str, str] = Field(default_factory=dict, alias="sampleAttrs")


class NormalizationEvent(BaseModel):
    """One locally recovered condition, kept so that no loss is silent."""

    model_config = ConfigDict(frozen=True)

    code: str
    path: List[int] = Field(default_factory=list)
    tag: Optional[str] = None
    detail: Dict[str, Any] = Field(default_factory=dict)


class ConversionFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    message: str


class ConversionResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    status: ConversionStatus
    document: Optional[Document] = None
    quarantine: List[QuarantinedNode] = Field(default_factory=list)
    unmapped_tags: List[UnmappedTag] = Field(default_factory=list, alias="unmappedTags")
    events: List[NormalizationEvent] = Field(default_factory=list)
    error: Optional[ConversionFailure] = None

    @property
    def ok(self) -> bool:
        return self.status is ConversionStatus.SUCCESS

    def events_of(self, code: str) -> List[NormalizationEvent]:
        return [e for e in self.events if e.code == code]

    def to_dict(self) -> Dict[str, Any]:
        body = self.model_dump(by_alias=True, mode="json", exclude={"document"})
        body["document"] = self.document.to_dict() if self.document is not None else None
        return body
