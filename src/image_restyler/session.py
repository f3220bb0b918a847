from __future__ import annotations

import base64
import logging
import time
import uuid
from dataclasses import dataclass, replace
from io import BytesIO
from typing import Any, Callable, Union

from cachetools import TTLCache
from PIL import Image, UnidentifiedImageError

from image_restyler.aspect import DEFAULT_ASPECT_RATIO, closest_aspect_ratio
from image_restyler.config import settings
from image_restyler.providers.base import RestyleProvider
from image_restyler.restyle import RestyleError, RestyleRequest, RestyleResult, restyle_image
from image_restyler.styles import DEFAULT_STYLE, StyleOption, get_style

logger = logging.getLogger(__name__)

# Pillow format name -> MIME type sent to the vision model. MPO is the multi-frame
# JPEG many phones and cameras write.
ACCEPTED_FORMATS: dict[str, str] = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "MPO": "image/jpeg",
    "WEBP": "image/webp",
}

INITIAL_LOADING_MESSAGE = "Initializing..."


class SessionError(Exception):
    pass


class SessionBusyError(SessionError):
    """A restyle is already in flight for this session."""


class InvalidTransitionError(SessionError):
    pass


@dataclass(frozen=True)
class UploadedImage:
    data: bytes
    mime_type: str
    width: int
    height: int
    filename: str = ""

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @property
    def display_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


# View states. Each one carries only the data that is valid while it is active.


@dataclass(frozen=True)
class Empty:
    kind = "empty"


@dataclass(frozen=True)
class Configuring:
    image: UploadedImage
    style: StyleOption
    twist: str
    aspect_ratio: str

    kind = "configuring"

    def to_request(self) -> RestyleRequest:
        return RestyleRequest(
            image_bytes=self.image.data,
            mime_type=self.image.mime_type,
            style_name=self.style.name,
            style_prompt=self.style.prompt,
            twist=self.twist,
            aspect_ratio=self.aspect_ratio,
        )


@dataclass(frozen=True)
class Loading:
    config: Configuring
    message: str = INITIAL_LOADING_MESSAGE

    kind = "loading"


@dataclass(frozen=True)
class Result:
    config: Configuring
    result: RestyleResult

    kind = "result"


ViewState = Union[Empty, Configuring, Loading, Result]


def read_image(data: bytes, declared_mime_type: str | None, filename: str = "") -> UploadedImage:
    """
    Decode an upload far enough to learn its real format and pixel size.

    Raises ValueError for anything that is not a PNG, JPEG or WEBP image.
    """
    if not data:
        raise ValueError("empty upload")
    if len(data) > settings.max_upload_bytes:
        raise ValueError(f"upload is {len(data)} bytes; limit is {settings.max_upload_bytes}")
    try:
        with Image.open(BytesIO(data)) as img:
            width, height = img.size
            fmt = img.format or ""
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError(f"could not decode image: {exc}") from exc

    mime_type = ACCEPTED_FORMATS.get(fmt)
    if mime_type is None:
        raise ValueError(f"unsupported image type: {fmt or declared_mime_type or 'unknown'}")
    return UploadedImage(data=data, mime_type=mime_type, width=width, height=height, filename=filename)


class RestyleSession:
    """In-memory state for one browser: which view is showing and what it holds."""

    def __init__(self) -> None:
        self.state: ViewState = Empty()
        self.error: str | None = None

    # Derived view data

    @property
    def selected_style(self) -> StyleOption:
        config = self._current_config()
        return config.style if config else DEFAULT_STYLE

    @property
    def twist(self) -> str:
        config = self._current_config()
        return config.twist if config else ""

    @property
    def aspect_ratio(self) -> str:
        config = self._current_config()
        return config.aspect_ratio if config else DEFAULT_ASPECT_RATIO

    @property
    def image(self) -> UploadedImage | None:
        config = self._current_config()
        return config.image if config else None

    @property
    def result(self) -> RestyleResult | None:
        return self.state.result if isinstance(self.state, Result) else None

    @property
    def is_loading(self) -> bool:
        return isinstance(self.state, Loading)

    @property
    def loading_message(self) -> str:
        return self.state.message if isinstance(self.state, Loading) else ""

    def _current_config(self) -> Configuring | None:
        if isinstance(self.state, Configuring):
            return self.state
        if isinstance(self.state, (Loading, Result)):
            return self.state.config
        return None

    # Actions

    def upload(self, data: bytes, mime_type: str | None, filename: str = "") -> bool:
        """
        Replace the current state with a freshly uploaded image.

        Unreadable uploads are logged and ignored: the state stays as it was and no
        error banner is shown. Returns whether the upload was accepted.
        """
        if self.is_loading:
            raise SessionBusyError("cannot upload while a restyle is running")
        try:
            image = read_image(data, mime_type, filename)
        except ValueError as exc:
            logger.warning("error reading upload %r: %s", filename, exc)
            return False

        self.error = None
        self.state = Configuring(
            image=image,
            style=self.selected_style,
            twist=self.twist,
            aspect_ratio=closest_aspect_ratio(image.width, image.height),
        )
        logger.info(
            "accepted %s upload %dx%d, aspect ratio %s",
            image.mime_type,
            image.width,
            image.height,
            self.state.aspect_ratio,
        )
        return True

    def configure(self, style_id: str | None = None, twist: str | None = None) -> None:
        self.error = None
        if not isinstance(self.state, Configuring):
            raise InvalidTransitionError(f"cannot change settings while {self.state.kind}")
        style = get_style(style_id) if style_id else self.state.style
        self.state = replace(
            self.state,
            style=style,
            twist=self.state.twist if twist is None else twist,
        )

    async def restyle(self, provider: RestyleProvider) -> RestyleResult | None:
        """
        Run the describe/generate sequence for the current image and settings.

        On success the session moves to Result. A RestyleError puts the session back
        where it was, with the error message set; None is returned in that case.
        """
        if isinstance(self.state, Loading):
            raise SessionBusyError("a restyle is already running")
        self.error = None
        config = self._current_config()
        if config is None:
            raise InvalidTransitionError("upload an image first")

        previous = self.state
        self.state = Loading(config=config)

        def still_loading() -> bool:
            # start_over() may have run while we were awaiting the provider.
            return isinstance(self.state, Loading) and self.state.config is config

        def on_progress(message: str) -> None:
            if still_loading():
                self.state = replace(self.state, message=message)

        try:
            result = await restyle_image(provider, config.to_request(), on_progress)
        except RestyleError as exc:
            if still_loading():
                self.state = previous
                self.error = str(exc)
            return None
        except BaseException:
            if still_loading():
                self.state = previous
            raise

        if not still_loading():
            logger.info("discarding restyle result; session was reset while loading")
            return None
        self.state = Result(config=config, result=result)
        return result

    def start_over(self) -> None:
        self.state = Empty()
        self.error = None

    def download(self) -> tuple[str, bytes]:
        """Return a timestamped filename and the JPEG bytes of the current result."""
        result = self.result
        if result is None:
            raise InvalidTransitionError("there is no restyled image to download")
        return f"restyled-{int(time.time() * 1000)}.jpeg", result.image_bytes

    def status(self) -> dict[str, Any]:
        return {
            "state": self.state.kind,
            "loading": self.is_loading,
            "message": self.loading_message,
            "error": self.error,
            "style_id": self.selected_style.id,
            "aspect_ratio": self.aspect_ratio,
        }


class SessionStore:
    """
    Sessions keyed by cookie value. Nothing is written to disk.

    Sessions expire after `ttl_seconds` without a request, and the least recently used
    one is evicted once `max_sessions` is reached.
    """

    def __init__(
        self,
        max_sessions: int | None = None,
        ttl_seconds: float | None = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: TTLCache[str, RestyleSession] = TTLCache(
            maxsize=max_sessions or settings.max_sessions,
            ttl=ttl_seconds or settings.session_ttl_seconds,
            timer=timer,
        )

    def get_or_create(self, session_id: str | None) -> tuple[str, RestyleSession]:
        session = self._sessions.get(session_id) if session_id else None
        if session is None:
            session_id = uuid.uuid4().hex
            session = RestyleSession()
        # Re-inserting restarts the expiry clock.
        self._sessions[session_id] = session
        return session_id, session

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        self._sessions.expire()
        return len(self._sessions)
