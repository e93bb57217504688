# ============================================================================
#  File: provider.py
#  Version: 1.0
#  Purpose: Abstract text-generation capability consumed by the workflow
#           engine and the streaming generator
#  Created: 02OCT26
# ============================================================================
# SECTION 1: Global Variable Definitions & Imports
# ============================================================================
#
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from forgeflow.config import STREAM_MAX_TOKENS, STREAM_TEMPERATURE
#
# ============================================================================
# SECTION 2: Request Structures
# ============================================================================
# Class 2.1: StreamRequest
# ============================================================================
#
@dataclass
class StreamRequest:
    """Payload handed to TextProvider.stream."""

    messages: List[Dict[str, str]] = field(default_factory=list)
    temperature: float = STREAM_TEMPERATURE
    max_tokens: int = STREAM_MAX_TOKENS

    @classmethod
    def from_prompt(
        cls, prompt: str, temperature: float = STREAM_TEMPERATURE, max_tokens: int = STREAM_MAX_TOKENS
    ) -> "StreamRequest":
        return cls(
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
            max_tokens=max_tokens,
        )
#
# ============================================================================
# SECTION 3: TextProvider Abstract Class
# ============================================================================
# Class 3.1: TextProvider
# ============================================================================
#
class TextProvider(ABC):
    """
    The one capability forgeflow depends on. Implementations wrap a concrete
    LLM SDK; they are assumed fallible, slow and non-deterministic, and any
    exception they raise is treated as retryable by the step executor.
    """

    #
    # ========================================================================
    # Method 3.1.1: generate
    # ========================================================================
    #
    @abstractmethod
    async def generate(self, prompt: str, options: Optional[Dict[str, Any]] = None) -> str:
        """
        Single-shot completion.

        Args:
            prompt: Fully interpolated prompt text
            options: Optional call options (currently ``timeout_ms``)

        Returns:
            The generated text
        """
        raise NotImplementedError("generate() must be implemented by subclasses.")

    #
    # ========================================================================
    # Method 3.1.2: stream
    # ========================================================================
    #
    @abstractmethod
    def stream(self, request: StreamRequest) -> AsyncIterator[Any]:
        """
        Token-incremental completion. Yields chunk objects exposing a
        ``content`` attribute (dicts with a ``content`` key and bare strings
        are accepted too, see ``chunk_text``).
        """
        raise NotImplementedError("stream() must be implemented by subclasses.")
#
# ============================================================================
# SECTION 4: Chunk Utilities
# ============================================================================
# Function 4.1: chunk_text
# ============================================================================
#
def chunk_text(chunk: Any) -> str:
    """Extract the text carried by one raw provider stream chunk."""
    if chunk is None:
        return ""
    if isinstance(chunk, str):
        return chunk
    if isinstance(chunk, dict):
        return str(chunk.get("content") or "")
    return str(getattr(chunk, "content", None) or "")


#
#
## END: provider.py
