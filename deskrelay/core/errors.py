from __future__ import annotations


class RelayError(Exception):
    """Base de todos os erros da camada de roteamento."""


class NotFound(RelayError, LookupError):
    pass


class AppNotFound(NotFound):
    def __init__(self, name: str) -> None:
        super().__init__(f"App {name} not found")
        self.name = name


class ClientNotFound(NotFound):
    def __init__(self, connection_id: str) -> None:
        super().__init__(f"Client {connection_id} not found")
        self.connection_id = connection_id


class AppNotRunning(RelayError):
    """App existe mas não tem capability de push (não está rodando)."""

    def __init__(self, name: str) -> None:
        super().__init__(f"App {name} does not have a push handle (is it running?)")
        self.name = name


CapabilityMissing = AppNotRunning


class Malformed(RelayError, ValueError):
    pass


class ExternalFailure(RelayError):
    pass
