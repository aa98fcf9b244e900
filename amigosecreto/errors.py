"""Exception hierarchy shared by the draw engine, the store adapter and the UI."""

from __future__ import annotations


EXHAUSTED_MESSAGE = "Erro lógico: Não há participantes disponíveis para você."
STORE_FAILURE_MESSAGE = "Erro de banco de dados. Contate o administrador."
CONFLICT_MESSAGE = "Seu sorteio foi ocupado por outra pessoa. Sorteie novamente."
ALREADY_DRAWN_MESSAGE = "Você já realizou seu sorteio em outra sessão."


class AmigoSecretoError(Exception):
    """Base class for every error raised by this package."""


class ExhaustedError(AmigoSecretoError):
    """No eligible target remains for the acting participant."""

    def __init__(self, message: str = EXHAUSTED_MESSAGE) -> None:
        super().__init__(message)


class StoreError(AmigoSecretoError):
    """Base class for participant store failures."""


class StoreUnavailableError(StoreError):
    """The participant store is unconfigured or could not be reached."""


class SchemaMismatchError(StoreError):
    """Neither naming convention matched the tables/columns of the store.

    Only raised after the alternate table name and column names have been
    tried as well.
    """


class InsightGenerationError(AmigoSecretoError):
    """The optional insight service returned something unusable."""


__all__ = [
    "ALREADY_DRAWN_MESSAGE",
    "AmigoSecretoError",
    "CONFLICT_MESSAGE",
    "EXHAUSTED_MESSAGE",
    "ExhaustedError",
    "InsightGenerationError",
    "STORE_FAILURE_MESSAGE",
    "SchemaMismatchError",
    "StoreError",
    "StoreUnavailableError",
]
