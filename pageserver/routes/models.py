"""Pydantic request/response models for the HTTP endpoints."""

from typing import Any

from pydantic import BaseModel


class SavePage(BaseModel):
    name: str
    config: str


class BasicResponse(BaseModel):
    status: int
    msg: str = ""
    data: dict[str, Any] | None = None
