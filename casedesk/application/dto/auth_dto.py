from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class Principal(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    user_id: str = Field(..., min_length=1)
    login: str = ""
    role: Literal["admin", "radiologist", "operator"] = "operator"
