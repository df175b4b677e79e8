"""Pydantic request bodies for API endpoints."""

from pydantic import BaseModel


class MessageBody(BaseModel):
    text: str


class SelectBody(BaseModel):
    option: str
