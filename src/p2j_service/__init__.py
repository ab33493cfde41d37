"""
PDF-to-JSON conversion service package.

This module provides a FastAPI application that parses uploaded or
referenced PDF documents and answers a minimal JSON projection of their
text and form-field content. See ``p2j_service.webapi``.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
