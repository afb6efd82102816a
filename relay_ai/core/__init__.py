"""
Core utilities and configuration for relay-ai.

This package provides logging configuration and settings shared by the
``llm``, ``agent_core`` and ``acp`` packages.
"""

from relay_ai.core.config import Settings, get_settings
from relay_ai.core.logging_config import get_logger, setup_logging

__all__ = ["Settings", "get_logger", "get_settings", "setup_logging"]
