from dataclasses import dataclass
from typing import Any, Callable, Protocol, Union


@dataclass(frozen=True)
class ParseReady:
    """Terminal success signal: the engine's raw output tree ({"Pages": [...], "Meta": {...}})."""

    data: dict[str, Any]


@dataclass(frozen=True)
class ParseFailed:
    """Terminal error signal: whatever error info the engine reported."""

    data: Any


ParseOutcome = Union[ParseReady, ParseFailed]


class ParseSession(Protocol):
    def load(self, file_path: str) -> ParseOutcome:
        """Parse the file and return exactly one terminal outcome.
        This is a blocking call; callers should offload to threads if needed.
        """

    def close(self) -> None:
        ...


class ParseEngine(Protocol):
    name: str

    def open_session(self, owner: object) -> ParseSession:
        """Create a session bound to ``owner``. Sessions never share mutable state."""


class Responder(Protocol):
    def send(self, status_code: int, body: object) -> None:
        ...


NextStep = Callable[[], None]


class ContextClosedError(RuntimeError):
    """Raised when a request context is completed twice or after destroy()."""


class EngineWiringError(RuntimeError):
    """Raised when a parse session cannot be set up for a staged file."""


class PayloadTooLarge(ValueError):
    pass


class UnsafeReference(ValueError):
    pass


class StagingGateway(Protocol):
    async def stage_upload(self, filename: str, reader: Callable[[int], Any]) -> "StagedDocument":
        ...

    def stage_reference(self, folder_name: str, pdf_id: str) -> "StagedDocument":
        ...

    def discard(self, path: str) -> None:
        ...


@dataclass(frozen=True)
class StagedDocument:
    path: str
    source_name: str
    size_bytes: int
