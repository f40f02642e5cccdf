"""Shared view-state and request types for Veo Studio."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

DEFAULT_IMAGE_MIME = "image/png"


class GenerationMode(str, Enum):
    TEXT_TO_VIDEO = "Text to Video"
    FRAMES_TO_VIDEO = "Frames to Video"
    REFERENCES_TO_VIDEO = "References to Video"
    EXTEND_VIDEO = "Extend Video"
    DIRECTOR = "Director"


class AspectRatio(str, Enum):
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"


class Resolution(str, Enum):
    P720 = "720p"
    P1080 = "1080p"


class VeoModel(str, Enum):
    VEO_FAST = "veo-3.1-fast-generate-preview"
    VEO = "veo-3.1-generate-preview"


class AppState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"
    DIRECTOR_READY = "director_ready"


class SceneStatus(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    DONE = "done"
    ERROR = "error"


# Modes a user can pick directly; Extend Video is reached from a finished clip.
SELECTABLE_MODES = (
    GenerationMode.TEXT_TO_VIDEO,
    GenerationMode.FRAMES_TO_VIDEO,
    GenerationMode.REFERENCES_TO_VIDEO,
    GenerationMode.DIRECTOR,
)


@dataclass(frozen=True)
class ImageFile:
    """An uploaded image held in memory."""

    data: bytes
    name: str = "image"
    mime_type: str | None = None

    @property
    def resolved_mime_type(self) -> str:
        return self.mime_type or DEFAULT_IMAGE_MIME

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @classmethod
    def from_upload(cls, upload: Any) -> "ImageFile":
        """Build from a Streamlit `UploadedFile` (or anything with name/type/getvalue)."""
        data = upload.getvalue()
        if not data:
            raise ValueError("Failed to read file.")
        return cls(
            data=data,
            name=getattr(upload, "name", None) or "image",
            mime_type=getattr(upload, "type", None) or None,
        )


@dataclass
class GenerateVideoParams:
    prompt: str = ""
    model: VeoModel = VeoModel.VEO_FAST
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE
    resolution: Resolution = Resolution.P720
    mode: GenerationMode = GenerationMode.TEXT_TO_VIDEO
    start_frame: Optional[ImageFile] = None
    end_frame: Optional[ImageFile] = None
    reference_images: List[ImageFile] = field(default_factory=list)
    input_video_object: Any = None
    is_looping: bool = False


@dataclass(frozen=True)
class GeneratedVideo:
    """A finished clip: downloaded bytes plus the remote handle for extension."""

    data: bytes
    uri: str
    video: Any
    mime_type: str = "video/mp4"


@dataclass
class StoryboardScene:
    id: str
    title: str
    prompt: str
    status: SceneStatus = SceneStatus.IDLE
    video_bytes: bytes | None = None
    video_object: Any = None
