from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class GeneratedImage:
    image_bytes: bytes
    mime_type: str
    prompt_used: str
    provider: str
    model: str
    raw_metadata: dict[str, Any] = field(default_factory=dict)


class VisionProvider(Protocol):
    name: str

    async def describe_image(
        self,
        image_bytes: bytes,
        mime_type: str,
        instruction: str,
    ) -> str: ...


class ImageProvider(Protocol):
    name: str

    async def generate(
        self,
        prompt: str,
        n: int,
        aspect_ratio: str,
        output_mime_type: str,
    ) -> list[GeneratedImage]: ...


class RestyleProvider(VisionProvider, ImageProvider, Protocol):
    """A backend that can both describe an image and generate a new one."""
