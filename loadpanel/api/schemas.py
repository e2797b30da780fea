from __future__ import annotations
from pydantic import BaseModel


class ControlRequest(BaseModel):
    loadId: str
    on: bool
