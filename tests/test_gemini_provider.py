import asyncio
from types import SimpleNamespace

import pytest

from conftest import make_image
from image_restyler.config import settings
from image_restyler.providers.gemini_provider import GeminiProvider


class FakeModels:
    def __init__(self, content_response=None, images_response=None):
        self.content_response = content_response
        self.images_response = images_response
        self.calls: list[tuple[str, dict]] = []

    async def generate_content(self, **kwargs):
        self.calls.append(("generate_content", kwargs))
        return self.content_response

    async def generate_images(self, **kwargs):
        self.calls.append(("generate_images", kwargs))
        return self.images_response


def _provider(models: FakeModels) -> GeminiProvider:
    # Skip __init__ so no real client is built.
    provider = GeminiProvider.__new__(GeminiProvider)
    provider.client = SimpleNamespace(aio=SimpleNamespace(models=models))
    return provider


def _inline_response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def test_describe_image_sends_image_and_instruction(monkeypatch):
    monkeypatch.setattr(settings, "gemini_vision_model", "gemini-test-vision")
    models = FakeModels(content_response=SimpleNamespace(text="a red square"))

    text = asyncio.run(_provider(models).describe_image(b"bytes", "image/png", "describe it"))

    assert text == "a red square"
    name, kwargs = models.calls[0]
    assert name == "generate_content"
    assert kwargs["model"] == "gemini-test-vision"
    image_part, instruction = kwargs["contents"]
    assert image_part.inline_data.data == b"bytes"
    assert image_part.inline_data.mime_type == "image/png"
    assert instruction == "describe it"


def test_describe_image_without_text_returns_empty_string():
    models = FakeModels(content_response=SimpleNamespace(text=None))
    assert asyncio.run(_provider(models).describe_image(b"x", "image/png", "go")) == ""


def test_imagen_generation(monkeypatch):
    monkeypatch.setattr(settings, "gemini_image_model", "imagen-3.0-generate-002")
    resp = SimpleNamespace(
        generated_images=[
            SimpleNamespace(image=SimpleNamespace(image_bytes=b"jpeg-one")),
            SimpleNamespace(image=None),
        ]
    )
    models = FakeModels(images_response=resp)

    images = asyncio.run(_provider(models).generate("a prompt", n=1, aspect_ratio="4:3"))

    assert [gi.image_bytes for gi in images] == [b"jpeg-one"]
    assert images[0].mime_type == "image/jpeg"
    assert images[0].provider == "gemini"
    name, kwargs = models.calls[0]
    assert name == "generate_images"
    assert kwargs["prompt"] == "a prompt"
    assert kwargs["config"].number_of_images == 1
    assert kwargs["config"].output_mime_type == "image/jpeg"
    assert kwargs["config"].aspect_ratio == "4:3"


def test_imagen_refusal_returns_no_images(monkeypatch):
    monkeypatch.setattr(settings, "gemini_image_model", "imagen-3.0-generate-002")
    models = FakeModels(images_response=SimpleNamespace(generated_images=None))
    assert asyncio.run(_provider(models).generate("p", n=1, aspect_ratio="1:1")) == []


def test_gemini_image_model_reencodes_inline_png_to_jpeg(monkeypatch):
    monkeypatch.setattr(settings, "gemini_image_model", "gemini-2.5-flash-image")
    png = make_image(32, 18, "PNG")
    resp = _inline_response(
        SimpleNamespace(inline_data=None, text="here you go"),
        SimpleNamespace(inline_data=SimpleNamespace(mime_type="image/png", data=png)),
    )
    models = FakeModels(content_response=resp)

    images = asyncio.run(_provider(models).generate("p", n=1, aspect_ratio="16:9"))

    assert len(images) == 1
    assert images[0].image_bytes[:2] == b"\xff\xd8"
    assert images[0].raw_metadata == {"mime_type": "image/png", "aspect_ratio": "16:9"}
    name, kwargs = models.calls[0]
    assert name == "generate_content"
    assert kwargs["config"].image_config.aspect_ratio == "16:9"


@pytest.mark.parametrize(
    "part",
    [
        SimpleNamespace(inline_data=SimpleNamespace(mime_type="text/plain", data=b"hello")),
        SimpleNamespace(inline_data=SimpleNamespace(mime_type="image/png", data=b"garbage")),
    ],
)
def test_gemini_image_model_skips_unusable_parts(monkeypatch, part):
    monkeypatch.setattr(settings, "gemini_image_model", "gemini-2.5-flash-image")
    models = FakeModels(content_response=_inline_response(part))

    assert asyncio.run(_provider(models).generate("p", n=1, aspect_ratio="1:1")) == []
    assert len(models.calls) == 1
