from __future__ import annotations

import asyncio
from io import BytesIO

import pytest
from PIL import Image

from image_restyler.providers.base import GeneratedImage

JPEG_RESULT = b"\xff\xd8\xff\xe0fake-jpeg"


def make_image(width: int = 64, height: int = 64, fmt: str = "PNG") -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), (200, 120, 40)).save(buf, format=fmt)
    return buf.getvalue()


class FakeProvider:
    name = "fake"

    def __init__(
        self,
        description: str = "a cat on a windowsill",
        images: list[bytes] | None = None,
        describe_exc: Exception | None = None,
        generate_exc: Exception | None = None,
    ) -> None:
        self.description = description
        self.images = [JPEG_RESULT] if images is None else images
        self.describe_exc = describe_exc
        self.generate_exc = generate_exc
        self.calls: list[tuple] = []
        self.generate_kwargs: dict = {}

    async def describe_image(self, image_bytes: bytes, mime_type: str, instruction: str) -> str:
        self.calls.append(("describe", mime_type, instruction))
        if self.describe_exc:
            raise self.describe_exc
        return self.description

    async def generate(
        self,
        prompt: str,
        n: int,
        aspect_ratio: str,
        output_mime_type: str = "image/jpeg",
    ) -> list[GeneratedImage]:
        self.calls.append(("generate", prompt))
        self.generate_kwargs = {
            "prompt": prompt,
            "n": n,
            "aspect_ratio": aspect_ratio,
            "output_mime_type": output_mime_type,
        }
        if self.generate_exc:
            raise self.generate_exc
        return [
            GeneratedImage(
                image_bytes=data,
                mime_type=output_mime_type,
                prompt_used=prompt,
                provider=self.name,
                model="fake-model",
            )
            for data in self.images
        ]

    @property
    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]


class GatedProvider(FakeProvider):
    """Holds generation open until `gate` is set."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.gate = asyncio.Event()
        self.generating = asyncio.Event()

    async def generate(self, *args, **kwargs):
        self.generating.set()
        await self.gate.wait()
        return await super().generate(*args, **kwargs)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def png_landscape() -> bytes:
    return make_image(1920, 1080, "PNG")
