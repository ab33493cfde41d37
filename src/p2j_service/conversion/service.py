import asyncio
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from .context import RequestContext
from .interfaces import ParseEngine, ParseFailed, ParseOutcome, ParseReady, ParseSession
from .models import ResponseEnvelope
from .projector import project

logger = logging.getLogger(__name__)


def _stringify(payload: Any) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False)
    except (TypeError, ValueError):
        return json.dumps(str(payload), ensure_ascii=False)


class ParseService:
    """Core domain service driving one parse per request context.

    This service is framework-agnostic. Each call to ``handle`` opens its own
    engine session, waits for the session's single terminal outcome on the
    service's own parse threads, answers the request context and removes the
    staged file. Parses that outlive their timeout keep a parse thread busy
    until the engine returns; they never hold up cleanup or the event loop.
    """

    def __init__(
        self,
        engine: ParseEngine,
        *,
        name: str = "ParseService",
        timeout_sec: float | None = None,
        max_workers: int = 4,
    ) -> None:
        self._engine = engine
        self._name = name
        self._timeout = timeout_sec if timeout_sec else None
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="parse")

    @property
    def engine(self) -> ParseEngine:
        return self._engine

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    async def handle(self, context: RequestContext, file_path: str) -> ResponseEnvelope:
        """Parse ``file_path`` and answer ``context`` with exactly one envelope.

        Errors raised while opening the session propagate and leave the file
        alone, since ownership of it was never taken. From then on the file
        is removed on every path, including timeout and cancellation.
        """
        session = self._engine.open_session(context)
        logger.info("%s parsing %s with %s", self._name, file_path, self._engine.name)
        try:
            outcome = await self._await_outcome(session, file_path)
            envelope = self._envelope_for(context, outcome)
            context.complete(envelope)
            context.destroy()
            return envelope
        finally:
            session.close()
            self._discard(file_path)

    async def _await_outcome(self, session: ParseSession, file_path: str) -> ParseOutcome:
        try:
            loop = asyncio.get_running_loop()
            parse = loop.run_in_executor(self._executor, session.load, file_path)
            return await asyncio.wait_for(parse, self._timeout)
        except asyncio.TimeoutError:
            logger.warning("%s parse timed out after %ss: %s", self._name, self._timeout, file_path)
            return ParseFailed(data=f"parse timed out after {self._timeout:g}s")

    def _envelope_for(self, context: RequestContext, outcome: ParseOutcome) -> ResponseEnvelope:
        if isinstance(outcome, ParseReady):
            logger.info("%s completed response.", self._name)
            return ResponseEnvelope.parsed(
                context.temp_file_path,
                project(outcome.data),
                outcome.data.get("Meta"),
            )
        message = _stringify(outcome.data)
        logger.warning("%s 500 Error: %s", self._name, message)
        return ResponseEnvelope.failed(message)

    def _discard(self, file_path: str) -> None:
        try:
            Path(file_path).unlink(missing_ok=True)
        except OSError as e:
            # response already sent; only record it
            logger.warning("%s could not remove temp file %s: %s", self._name, file_path, e)
