from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# Tipos conhecidos de envelope vindo de um app.
# O campo `type` continua `str` para tipos desconhecidos chegarem ao
# dispatcher (que loga e ignora).
EnvelopeType = Literal[
    "message",
    "get",
    "set",
    "add",
    "open",
    "data",
    "toApp",
    "error",
    "log",
    "button",
    "action",
]

# tipos em que `request` faz parte do roteamento
REQUEST_TYPES = ("get", "button", "action", "toApp")


class AppEnvelope(BaseModel):
    """App -> servidor (e servidor -> app). O app de origem vem do canal."""

    model_config = ConfigDict(frozen=True)

    type: str
    request: Optional[str] = None
    payload: Any = None


class ClientMessage(BaseModel):
    """Servidor <-> client (hardware). Vai como text frame JSON."""

    app: str
    type: str
    payload: Any = None
    request: Optional[str] = None

    def to_wire(self) -> dict:
        return self.model_dump(exclude_none=True)


# =========================
# PAYLOADS (por type/request)
# =========================


class IdPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str


class KeyPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = "unsetid"
    description: str = "Default Description"
    version: str = "0.0.0"
    Modes: List[Any] = Field(default_factory=list)


class ActionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = "unsetid"
    name: str = "Default Name"
    description: str = "No description provided"
    value: Any = None
    value_options: List[Any] = Field(default_factory=list)
    icon: Optional[str] = None
    version: str = "0.0.0"


class ActionIconPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    icon: Optional[str] = None


class ClientDataPayload(BaseModel):
    """Payload de `data`: o que o app quer mandar para os clients."""

    model_config = ConfigDict(extra="ignore")

    app: Optional[str] = None
    type: Optional[str] = None
    request: Optional[str] = None
    payload: Any = None


class AppSettingPayload(BaseModel):
    """Client pedindo para alterar um setting de um app."""

    model_config = ConfigDict(extra="ignore")

    app: str
    id: str
    value: Any = None
