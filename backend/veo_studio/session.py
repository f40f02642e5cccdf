"""Studio view-state machine: idle -> loading -> success/error, plus director flow."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .director import Director, parse_script
from .models import (
    AppState,
    AspectRatio,
    GeneratedVideo,
    GenerateVideoParams,
    GenerationMode,
    Resolution,
    VeoModel,
)

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 12


class StudioSession:
    """Holds what the page shows and runs the remote calls behind each action."""

    def __init__(self, video_client: Any, ai_client: Any):
        self.video_client = video_client
        self.ai_client = ai_client
        self.state = AppState.IDLE
        self.video: GeneratedVideo | None = None
        self.error_message: str | None = None
        self.last_params: GenerateVideoParams | None = None
        self.director: Director | None = None
        self.form_presets: GenerateVideoParams | None = None
        self.history: List[Dict[str, str]] = []

    def generate(
        self,
        params: GenerateVideoParams,
        on_poll: Optional[Callable[[int, float], None]] = None,
    ) -> bool:
        self.state = AppState.LOADING
        self.error_message = None
        self.video = None
        self.last_params = params

        try:
            result = self.video_client.generate_video(params, on_poll=on_poll)
        except Exception as exc:
            logger.warning("Video generation failed: %s", exc)
            self.error_message = str(exc) or "Unknown error"
            self.state = AppState.ERROR
            return False

        self.video = result
        self.state = AppState.SUCCESS
        self._save_history(params)
        return True

    def retry(self, on_poll: Optional[Callable[[int, float], None]] = None) -> bool:
        if self.last_params is None:
            raise RuntimeError("Nothing to retry yet.")
        return self.generate(self.last_params, on_poll=on_poll)

    def start_director(
        self,
        script: str,
        model: VeoModel = VeoModel.VEO_FAST,
        aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE,
        resolution: Resolution = Resolution.P720,
    ) -> Director:
        """Analyze the script and open the storyboard. Analysis errors propagate."""
        scenes = parse_script(self.ai_client, script)
        self.director = Director(
            scenes,
            self.video_client,
            model=model,
            aspect_ratio=aspect_ratio,
            resolution=resolution,
        )
        self.last_params = GenerateVideoParams(
            prompt=script,
            model=model,
            aspect_ratio=aspect_ratio,
            resolution=resolution,
            mode=GenerationMode.DIRECTOR,
        )
        self.error_message = None
        self.state = AppState.DIRECTOR_READY
        return self.director

    def new_video(self) -> None:
        self.state = AppState.IDLE
        self.video = None
        self.error_message = None
        self.director = None
        self.form_presets = None

    @property
    def can_extend(self) -> bool:
        # Veo only extends 720p clips.
        return (
            self.video is not None
            and self.last_params is not None
            and Resolution(self.last_params.resolution) is Resolution.P720
        )

    def extend(self) -> None:
        """Return to the form, preset to continue the last clip."""
        if not self.can_extend:
            raise RuntimeError("Only 720p videos can be extended.")
        self.form_presets = replace(
            self.last_params,
            prompt="",
            mode=GenerationMode.EXTEND_VIDEO,
            start_frame=None,
            end_frame=None,
            reference_images=[],
            input_video_object=self.video.video,
            is_looping=False,
        )
        self.state = AppState.IDLE
        self.video = None

    def _save_history(self, params: GenerateVideoParams) -> None:
        item = {
            "time": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            "mode": GenerationMode(params.mode).value,
            "prompt": params.prompt,
            "resolution": Resolution(params.resolution).value,
        }
        self.history.insert(0, item)
        del self.history[HISTORY_LIMIT:]
