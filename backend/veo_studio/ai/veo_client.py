"""Veo video generation client: request building, operation polling, download."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import unquote

import requests
from google import genai
from google.genai import types

from ..errors import VideoGenerationError
from ..models import GeneratedVideo, GenerateVideoParams, GenerationMode, ImageFile

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 10.0
DOWNLOAD_TIMEOUT_SECONDS = 300

PollCallback = Callable[[int, float], None]


def _value(option: Any) -> Any:
    return getattr(option, "value", option)


def _to_image(image: ImageFile) -> types.Image:
    return types.Image(image_bytes=image.data, mime_type=image.resolved_mime_type)


def build_video_request(params: GenerateVideoParams) -> Dict[str, Any]:
    """Return keyword arguments for `client.models.generate_videos`."""
    mode = GenerationMode(_value(params.mode))

    config: Dict[str, Any] = {
        "number_of_videos": 1,
        "resolution": _value(params.resolution),
    }
    # Extensions inherit the framing of the source clip.
    if mode is not GenerationMode.EXTEND_VIDEO:
        config["aspect_ratio"] = _value(params.aspect_ratio)

    request: Dict[str, Any] = {"model": _value(params.model)}
    if params.prompt:
        request["prompt"] = params.prompt

    if params.start_frame:
        request["image"] = _to_image(params.start_frame)

    if mode is GenerationMode.FRAMES_TO_VIDEO:
        last_frame = params.start_frame if params.is_looping else params.end_frame
        if last_frame:
            config["last_frame"] = _to_image(last_frame)
    elif mode is GenerationMode.REFERENCES_TO_VIDEO:
        references = [
            types.VideoGenerationReferenceImage(
                image=_to_image(image),
                reference_type=types.VideoGenerationReferenceType.ASSET,
            )
            for image in params.reference_images or []
        ]
        if references:
            config["reference_images"] = references
    elif mode is GenerationMode.EXTEND_VIDEO:
        if params.input_video_object is None:
            raise VideoGenerationError("An input video object is required to extend a video.")
        request["video"] = params.input_video_object

    request["config"] = types.GenerateVideosConfig(**config)
    return request


def _operation_error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(getattr(error, "message", None) or error)


class VeoClient:
    """Submits one video job and blocks on a fixed-interval poll until it finishes."""

    def __init__(
        self,
        api_key: str | None = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        client: Any = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = (api_key or "").strip() or None
        self.poll_interval_seconds = float(poll_interval_seconds)
        self._client = client
        self._session = session
        self._sleep = sleep

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def _get_client(self) -> Any:
        if self._client is None:
            if not self.api_key:
                raise VideoGenerationError(
                    "No Gemini API key configured. Set GEMINI_API_KEY to generate videos."
                )
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def generate_video(
        self,
        params: GenerateVideoParams,
        on_poll: Optional[PollCallback] = None,
    ) -> GeneratedVideo:
        request = build_video_request(params)
        client = self._get_client()

        logger.info(
            "Submitting %s job (model=%s, resolution=%s)",
            _value(params.mode),
            request["model"],
            _value(params.resolution),
        )
        operation = client.models.generate_videos(**request)
        operation = self._wait_for(client, operation, on_poll)

        video = self._first_video(operation)
        if getattr(video, "video_bytes", None):
            # Vertex-style responses inline the bytes instead of a download URI.
            uri = unquote(getattr(video, "uri", None) or "")
            data = video.video_bytes
        else:
            if not getattr(video, "uri", None):
                raise VideoGenerationError("Generated video has no download URI.")
            uri = unquote(video.uri)
            data = self._download(uri)

        logger.info("Video ready (%d bytes)", len(data))
        return GeneratedVideo(
            data=data,
            uri=uri,
            video=video,
            mime_type=getattr(video, "mime_type", None) or "video/mp4",
        )

    def _wait_for(self, client: Any, operation: Any, on_poll: Optional[PollCallback]) -> Any:
        started = time.monotonic()
        attempt = 0
        while not operation.done:
            self._sleep(self.poll_interval_seconds)
            attempt += 1
            operation = client.operations.get(operation)
            elapsed = time.monotonic() - started
            logger.debug("Poll %d for %s (%.0fs elapsed)", attempt, getattr(operation, "name", "?"), elapsed)
            if on_poll is not None:
                on_poll(attempt, elapsed)
        return operation

    @staticmethod
    def _first_video(operation: Any) -> Any:
        error = getattr(operation, "error", None)
        if error:
            raise VideoGenerationError(_operation_error_message(error))

        response = getattr(operation, "response", None)
        if not response:
            raise VideoGenerationError("Operation failed.")

        videos = getattr(response, "generated_videos", None)
        if not videos:
            raise VideoGenerationError("No videos were generated.")
        return videos[0].video

    def _download(self, uri: str) -> bytes:
        response = self._get_session().get(
            uri,
            params={"key": self.api_key},
            timeout=DOWNLOAD_TIMEOUT_SECONDS,
        )
        if not response.ok:
            raise VideoGenerationError(f"Failed to fetch video: {response.status_code}")
        return response.content
