from __future__ import annotations

import logging
from io import BytesIO
from typing import Any

from PIL import Image, UnidentifiedImageError

from image_restyler.config import settings
from image_restyler.providers.base import GeneratedImage

logger = logging.getLogger(__name__)


class GeminiProvider:
    name = "gemini"

    def __init__(self, api_key: str) -> None:
        # Imported lazily so the app can start without the dependency installed.
        from google import genai  # type: ignore

        self._genai = genai
        self.client = genai.Client(api_key=api_key)

    async def describe_image(
        self,
        image_bytes: bytes,
        mime_type: str,
        instruction: str,
    ) -> str:
        from google.genai import types  # type: ignore

        model = settings.gemini_vision_model
        resp = await self.client.aio.models.generate_content(
            model=model,
            contents=[
                types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                instruction,
            ],
        )
        text: str | None = getattr(resp, "text", None)
        logger.info("described image with %s (%d chars)", model, len(text or ""))
        return text or ""

    async def generate(
        self,
        prompt: str,
        n: int,
        aspect_ratio: str,
        output_mime_type: str = "image/jpeg",
    ) -> list[GeneratedImage]:
        """
        Two paths depending on model family:
        - Imagen models: `models.generate_images(...)` (text-to-image)
        - Gemini image models: `models.generate_content(...)` with image response modality
        """
        from google.genai import types  # type: ignore

        model = settings.gemini_image_model
        out: list[GeneratedImage] = []

        if model.startswith("imagen-"):
            resp = await self.client.aio.models.generate_images(
                model=model,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=n,
                    output_mime_type=output_mime_type,
                    aspect_ratio=aspect_ratio,
                ),
            )
            for gi in getattr(resp, "generated_images", []) or []:
                img_bytes = getattr(getattr(gi, "image", None), "image_bytes", None)
                if not img_bytes:
                    continue
                out.append(
                    GeneratedImage(
                        image_bytes=img_bytes,
                        mime_type=output_mime_type,
                        prompt_used=prompt,
                        provider=self.name,
                        model=model,
                        raw_metadata={"aspect_ratio": aspect_ratio},
                    )
                )
            return out[:n]

        # Gemini image models return at most one image per call, so loop until we hit n
        # (or the model refuses).
        for _ in range(max(1, n)):
            resp = await self.client.aio.models.generate_content(
                model=model,
                contents=[prompt],
                config=types.GenerateContentConfig(
                    response_modalities=["image", "text"],
                    image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
                ),
            )

            extracted = _extract_images_from_generate_content(resp)
            for img, meta in extracted:
                out.append(
                    GeneratedImage(
                        image_bytes=_encode_image(img, output_mime_type),
                        mime_type=output_mime_type,
                        prompt_used=prompt,
                        provider=self.name,
                        model=model,
                        raw_metadata=meta | {"aspect_ratio": aspect_ratio},
                    )
                )
                if len(out) >= n:
                    return out

            # Stop early if we didn't get anything back this attempt.
            if not extracted:
                break

        return out


_PIL_FORMATS = {"image/jpeg": "JPEG", "image/png": "PNG", "image/webp": "WEBP"}


def _encode_image(img: Image.Image, mime_type: str) -> bytes:
    fmt = _PIL_FORMATS.get(mime_type, "JPEG")
    if fmt == "JPEG" and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    buf = BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def _extract_images_from_generate_content(resp: Any) -> list[tuple[Image.Image, dict[str, Any]]]:
    out: list[tuple[Image.Image, dict[str, Any]]] = []
    for cand in getattr(resp, "candidates", []) or []:
        content = getattr(cand, "content", None)
        parts = getattr(content, "parts", None) or []
        for part in parts:
            inline = getattr(part, "inline_data", None)
            if not inline:
                continue
            mime = getattr(inline, "mime_type", None) or ""
            data = getattr(inline, "data", None)
            if not data:
                continue
            if mime and not mime.startswith("image/"):
                continue
            try:
                img = Image.open(BytesIO(data))
                img.load()
            except (UnidentifiedImageError, OSError):
                logger.warning("skipping undecodable inline image part (%s)", mime or "unknown")
                continue
            out.append((img, {"mime_type": mime}))
    return out
