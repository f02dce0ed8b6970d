"""KnowledgeSource schema — one entry of an agent's knowledge list.

Sources aren't a table of their own: an agent stores them as a JSON list
and they are validated through this model whenever they cross the API.
"""

import re
import uuid
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, model_validator

URL_PATTERN = re.compile(r'^(http|https)://[^ "]+$')


class SourceType(StrEnum):
    DOCUMENT = "document"
    WEBSITE = "website"
    TEXT = "text"
    QA = "qa"


class KnowledgeSource(BaseModel):
    source_type: SourceType
    document_id: uuid.UUID | None = None
    url: str | None = None
    content: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _exactly_one_payload(self) -> "KnowledgeSource":
        populated = {
            name
            for name in ("document_id", "url", "content")
            if getattr(self, name) is not None
        }
        if self.source_type == SourceType.DOCUMENT:
            expected = "document_id"
        elif self.source_type == SourceType.WEBSITE:
            expected = "url"
        else:
            expected = "content"

        if populated != {expected}:
            raise ValueError(
                f"{self.source_type} sources require exactly '{expected}' to be set"
            )
        if self.url is not None and not URL_PATTERN.match(self.url):
            raise ValueError(f"{self.url} is not a valid URL!")
        return self

    @property
    def label(self) -> str:
        if self.source_type == SourceType.WEBSITE:
            return f"website {self.url}"
        if self.source_type == SourceType.DOCUMENT:
            return f"document {self.document_id}"
        return f"{self.source_type} source"
