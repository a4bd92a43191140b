from __future__ import annotations

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    status: str = "ok"


class GreetingRequest(BaseModel):
    name: str = ""
    greeting: str = Field(default="Hello", max_length=40)


class GreetingResponse(BaseModel):
    message: str
    name: str
