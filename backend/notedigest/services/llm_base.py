"""
NoteDigest Backend — Abstract Generator Interfaces
===================================================

What:  Abstract base classes for the two generative capabilities the core uses:
       text generation (prompt → text) and vision generation (prompt + images → text).
Why:   The summary pipeline and NoteService depend only on these contracts, so
       providers can be swapped and tests can hand in AsyncMock stubs.
How:   Concrete implementations (GeminiTextGenerator, GeminiVisionGenerator)
       inherit from these and implement generate().

Design Decision:
    Text and vision are separate capabilities handed to callers explicitly.
    A caller that needs text generation receives a TextGenerator; it never
    builds one out of a VisionGenerator's credentials.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class ImagePart:
    """
    One image handed to a vision generator.

    Attributes:
        data_base64: Image bytes, base64-encoded
        mime_type:   e.g. "image/png", "image/jpeg"
    """

    data_base64: str
    mime_type: str


class TextGenerator(ABC):
    """
    Contract:
        - generate() returns the model's text for a prompt
        - Failures raise GenerationError (or a subclass)
        - No retry happens inside generate(); callers decide
    """

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """
        Generate text for a prompt.

        Raises:
            GenerationError: provider or transport failure
            CircuitBreakerOpenError: too many recent failures
        """
        ...

    async def health_check(self) -> bool:
        """Lightweight reachability check. Defaults to True for providers without one."""
        return True


class VisionGenerator(ABC):
    """
    Contract: same failure semantics as TextGenerator, with images attached.
    """

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        images: Sequence[ImagePart],
        max_output_tokens: int,
    ) -> str:
        """
        Generate text from a prompt plus one or more images.

        Args:
            prompt: Instruction text sent before the images
            images: Base64 image parts, in order
            max_output_tokens: Output cap for this call

        Raises:
            GenerationError: provider or transport failure
            CircuitBreakerOpenError: too many recent failures
        """
        ...
