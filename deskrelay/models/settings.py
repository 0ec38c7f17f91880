from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class ServerSettings(BaseModel):
    # nomes iguais aos que a UI já usa (camelCase)
    model_config = ConfigDict(extra="allow")

    refreshInterval: int = 15000  # ms; negativo desliga o poller
    playbackLocation: Optional[str] = None
    globalADB: bool = False
    callbackPort: int = 8888
