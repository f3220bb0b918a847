from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Callable

from image_restyler.providers.base import RestyleProvider

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]

OUTPUT_MIME_TYPE = "image/jpeg"

DESCRIBE_INSTRUCTION = (
    "Describe this image in a concise but detailed paragraph, focusing on the main subject, "
    "composition, and background. This description will be used to recreate the image."
)

PROGRESS_DESCRIBING = "Step 1/2: Analyzing your image..."
PROGRESS_GENERATING = "Step 2/2: Re-imagining with new style..."

DESCRIBE_FAILED = "Failed to analyze the image. Please try again."
GENERATE_EMPTY = "Image generation failed to return an image. The AI may have refused the prompt."
GENERATE_FAILED = "Failed to generate the new image. The prompt may have been rejected. Try a different image or twist."


class RestyleError(Exception):
    """A restyle attempt failed; the message is meant for the user."""


class DescribeError(RestyleError):
    pass


class GenerateError(RestyleError):
    pass


@dataclass(frozen=True)
class RestyleRequest:
    image_bytes: bytes
    mime_type: str
    style_name: str
    style_prompt: str
    twist: str
    aspect_ratio: str


@dataclass(frozen=True)
class RestyleResult:
    description: str
    image_bytes: bytes
    mime_type: str = OUTPUT_MIME_TYPE

    @property
    def base64(self) -> str:
        return base64.b64encode(self.image_bytes).decode("ascii")

    @property
    def display_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


def build_generation_prompt(style_prompt: str, description: str, twist: str = "") -> str:
    """
    Put the stylistic command first so the model treats the description as content,
    not as the style to reproduce.
    """
    prompt = f"{style_prompt}. The image to transform is described as: {description}. "
    if twist and twist.strip():
        prompt += f"Further instructions: {twist}"
    return prompt


async def describe(provider: RestyleProvider, image_bytes: bytes, mime_type: str) -> str:
    try:
        description = await provider.describe_image(
            image_bytes=image_bytes,
            mime_type=mime_type,
            instruction=DESCRIBE_INSTRUCTION,
        )
    except Exception as exc:
        logger.exception("error describing image with %s", provider.name)
        raise DescribeError(DESCRIBE_FAILED) from exc

    description = (description or "").strip()
    if not description:
        logger.error("%s returned an empty description", provider.name)
        raise DescribeError(DESCRIBE_FAILED)
    return description


async def generate(provider: RestyleProvider, prompt: str, aspect_ratio: str) -> bytes:
    try:
        images = await provider.generate(
            prompt=prompt,
            n=1,
            aspect_ratio=aspect_ratio,
            output_mime_type=OUTPUT_MIME_TYPE,
        )
    except Exception as exc:
        logger.exception("error generating image with %s", provider.name)
        raise GenerateError(GENERATE_FAILED) from exc

    if not images:
        logger.error("%s returned no images for aspect ratio %s", provider.name, aspect_ratio)
        raise GenerateError(GENERATE_EMPTY)
    return images[0].image_bytes


async def restyle_image(
    provider: RestyleProvider,
    request: RestyleRequest,
    on_progress: ProgressCallback | None = None,
) -> RestyleResult:
    """
    Describe the uploaded image, then generate a new one in the requested style.

    The two calls are strictly sequential: a failed description means generation never runs.
    Raises DescribeError or GenerateError; nothing is retried.
    """
    notify = on_progress or (lambda _message: None)

    notify(PROGRESS_DESCRIBING)
    description = await describe(provider, request.image_bytes, request.mime_type)

    notify(PROGRESS_GENERATING)
    prompt = build_generation_prompt(request.style_prompt, description, request.twist)
    image_bytes = await generate(provider, prompt, request.aspect_ratio)

    logger.info(
        "restyled image as %r at %s (%d bytes)",
        request.style_name,
        request.aspect_ratio,
        len(image_bytes),
    )
    return RestyleResult(description=description, image_bytes=image_bytes)
