"""Pydantic request/response models for API endpoints."""

from pydantic import BaseModel


class PutValue(BaseModel):
    value: str


class KVEntry(BaseModel):
    key: str
    value: str


class KVListing(BaseModel):
    keys: list[str]
    cursor: str | None = None
    list_complete: bool = True
