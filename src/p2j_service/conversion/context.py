from typing import Any

from .interfaces import ContextClosedError, NextStep, Responder
from .models import ResponseEnvelope


class RequestContext:
    """Binds one inbound request to its reply handles and its staged input file.

    A context is completed at most once. After ``complete`` or ``destroy`` the
    transport handles are dropped and must not be used again.
    """

    def __init__(
        self,
        request: Any,
        response: Responder,
        next_step: NextStep | None,
        temp_file_path: str,
    ) -> None:
        self.request: Any = request
        self.response: Responder | None = response
        self.next_step: NextStep | None = next_step
        self.temp_file_path = temp_file_path

    @property
    def closed(self) -> bool:
        return self.response is None

    def complete(self, envelope: ResponseEnvelope) -> None:
        if self.response is None:
            raise ContextClosedError(f"request for {self.temp_file_path} was already answered")
        response, next_step = self.response, self.next_step
        self.destroy()
        response.send(200, envelope.to_dict())
        if next_step is not None:
            next_step()

    def destroy(self) -> None:
        self.request = None
        self.response = None
        self.next_step = None
