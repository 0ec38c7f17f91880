from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

DEFAULT_PROFILE = "default"


class Key(BaseModel):
    id: str
    description: str = "Default Description"
    source: str
    version: str = "0.0.0"
    enabled: bool = True
    Modes: List[Any] = Field(default_factory=list)


class Action(BaseModel):
    id: str
    name: str = "Default Name"
    description: str = "No description provided"
    value: Any = None
    value_options: List[Any] = Field(default_factory=list)
    icon: Optional[str] = None
    version: str = "0.0.0"
    enabled: bool = True
    source: str


# profile -> key_id -> mode -> action_id
ProfileMap = Dict[str, Dict[str, str]]


class ButtonMapping(BaseModel):
    version: str = "0.9.0"
    selected_profile: str = DEFAULT_PROFILE
    profiles: Dict[str, ProfileMap] = Field(default_factory=lambda: {DEFAULT_PROFILE: {}})
    keys: Dict[str, Key] = Field(default_factory=dict)
    actions: Dict[str, Action] = Field(default_factory=dict)
