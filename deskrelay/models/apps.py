from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class AppManifest(BaseModel):
    id: str
    label: str = ""
    version: str = "0.0.0"
    description: str = ""
    isWebApp: bool = True
    isLocalApp: bool = False
    requires: List[str] = Field(default_factory=list)


class AppRegisterRequest(BaseModel):
    name: str
    manifest: Optional[AppManifest] = None
    enabled: bool = True


class AppOrderRequest(BaseModel):
    order: List[str]
