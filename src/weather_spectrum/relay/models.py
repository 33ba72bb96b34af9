"""Request bodies accepted by the notification relay."""

from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator


class NotificationRequest(BaseModel):
    """Body of POST /send-notification."""
    title: str
    message: str
    url: Optional[str] = None
    segments: Optional[List[str]] = Field(default=None)

    @field_validator('title', 'message')
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('must not be blank')
        return value


class CensusLookupRequest(BaseModel):
    """Body of POST /census-lookup."""
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


def invalid_fields(error: ValidationError) -> List[str]:
    """Top-level field names named by a pydantic validation error, in order."""
    fields: List[str] = []
    for detail in error.errors():
        loc = detail.get('loc') or ('body',)
        name = str(loc[0])
        if name not in fields:
            fields.append(name)
    return fields
