"""
Domain layer for PDF-to-JSON conversion.
Provides interfaces (gateways), the request context, the result projector
and a service orchestrating one parse per request, abstracting the parse
engine and file staging so front-ends (HTTP or others) can use the same
core logic.
"""

from .context import RequestContext
from .interfaces import (
    ContextClosedError,
    EngineWiringError,
    ParseEngine,
    ParseFailed,
    ParseOutcome,
    ParseReady,
    ParseSession,
    PayloadTooLarge,
    Responder,
    StagedDocument,
    StagingGateway,
    UnsafeReference,
)
from .models import FieldProjection, PageProjection, ResponseEnvelope, TextProjection
from .projector import project
from .service import ParseService
