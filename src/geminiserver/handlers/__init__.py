"""
Ready-made request handlers.

A handler is any callable taking ``(GeminiRequest, GeminiResponse)`` that
finishes the response with one terminal call (``send``, ``redirect``,
``send_status`` or a helper built on them).
"""

from .static import StaticFileHandler

__all__ = ["StaticFileHandler"]
