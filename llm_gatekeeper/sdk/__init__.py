"""
SDK for LLM Gatekeeper.

Provides programmatic access to guarded completions.
"""

from .openai_client import CompletionClient
from .service import AIService, get_ai_service, reset_ai_service

__all__ = ["AIService", "CompletionClient", "get_ai_service", "reset_ai_service"]
