"""Chat completion providers for autopilot.

This module provides implementations of ChatCompletionProvider for model backends.
"""

from autopilot.adaptors.openai import OpenAIProvider

__all__ = ["OpenAIProvider"]
