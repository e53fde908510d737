from __future__ import annotations

from pydantic import BaseModel, Field


class HelpResponse(BaseModel):
    explanation: str
    tips: list[str] = Field(default_factory=list)
    related_features: list[str] = Field(default_factory=list)
