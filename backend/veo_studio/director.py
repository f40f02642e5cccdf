"""Director mode: split a script into scenes and produce one clip per scene."""

from __future__ import annotations

import json
import logging
import re
import textwrap
from typing import Any, Callable, List, Optional, Sequence

from .errors import ScriptAnalysisError
from .models import (
    AspectRatio,
    GenerateVideoParams,
    GenerationMode,
    Resolution,
    SceneStatus,
    StoryboardScene,
    VeoModel,
)

logger = logging.getLogger(__name__)

SCENE_COUNT = 5
PARSE_ERROR_MESSAGE = "Could not interpret the script. Please try a different description."

SCRIPT_SYSTEM_PROMPT = (
    "You are a storyboard artist preparing shots for an AI video generator. "
    "Reply with JSON only."
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_SENTENCE_SPLIT_RE = re.compile(r"[.!?\n]+")


def _script_prompt(script: str) -> str:
    return textwrap.dedent(
        f"""
        Analyze the following video script/brief and break it into {SCENE_COUNT} distinct cinematic scenes for an AI video generator.
        Each scene should have a clear visual prompt that describes the camera angle, lighting, and action.
        Ensure the prompts describe a consistent environment and character.

        Return a JSON object of the form {{"scenes": [{{"title": "...", "prompt": "..."}}]}}.

        Script:
        """
    ).strip() + "\n" + script


def _to_scenes(items: Sequence[Any]) -> List[StoryboardScene]:
    scenes: list[StoryboardScene] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ScriptAnalysisError(PARSE_ERROR_MESSAGE)
        title = item.get("title")
        prompt = item.get("prompt")
        if not isinstance(title, str) or not isinstance(prompt, str):
            raise ScriptAnalysisError(PARSE_ERROR_MESSAGE)
        scenes.append(StoryboardScene(id=f"scene-{index}", title=title.strip(), prompt=prompt.strip()))
    return scenes


def parse_scene_json(text: str) -> List[StoryboardScene]:
    """Turn the model's JSON reply into idle storyboard scenes."""
    cleaned = _FENCE_RE.sub("", (text or "").strip())
    try:
        raw = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse script JSON: %s", exc)
        raise ScriptAnalysisError(PARSE_ERROR_MESSAGE) from exc

    if isinstance(raw, dict):
        raw = raw.get("scenes")
    if not isinstance(raw, list) or not raw:
        logger.error("Script JSON has no scene list")
        raise ScriptAnalysisError(PARSE_ERROR_MESSAGE)
    return _to_scenes(raw)


def fallback_scenes(script: str) -> List[StoryboardScene]:
    """Offline storyboard: one scene per sentence, at most five."""
    sentences = [part.strip() for part in _SENTENCE_SPLIT_RE.split(script) if len(part.strip()) > 5]
    if not sentences:
        sentences = [script.strip()]
    return [
        StoryboardScene(
            id=f"scene-{index}",
            title=f"Scene {index + 1}",
            prompt=f"Cinematic shot, consistent character and setting: {sentence}",
        )
        for index, sentence in enumerate(sentences[:SCENE_COUNT])
    ]


def parse_script(ai_client: Any, script: str, model: str | None = None) -> List[StoryboardScene]:
    """Break a script into storyboard scenes with the chat model."""
    if not script or not script.strip():
        raise ScriptAnalysisError("Paste a script or storyboard to analyze.")

    if not getattr(ai_client, "is_live", False):
        logger.info("No chat provider configured; using offline scene split")
        return fallback_scenes(script)

    content = ai_client.complete_text(
        SCRIPT_SYSTEM_PROMPT,
        _script_prompt(script),
        model=model,
        response_format={"type": "json_object"},
    )
    scenes = parse_scene_json(content)
    logger.info("Script analysis produced %d scenes", len(scenes))
    return scenes


class Director:
    """Per-scene generation over a storyboard, one clip at a time."""

    def __init__(
        self,
        scenes: Sequence[StoryboardScene],
        video_client: Any,
        model: VeoModel = VeoModel.VEO_FAST,
        aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE,
        resolution: Resolution = Resolution.P720,
    ):
        self.scenes: List[StoryboardScene] = list(scenes)
        self.video_client = video_client
        self.model = model
        self.aspect_ratio = aspect_ratio
        self.resolution = resolution
        self.global_error: str | None = None

    @property
    def completed_count(self) -> int:
        return sum(1 for scene in self.scenes if scene.status is SceneStatus.DONE)

    def scene_params(self, index: int) -> GenerateVideoParams:
        return GenerateVideoParams(
            prompt=self.scenes[index].prompt,
            model=self.model,
            aspect_ratio=self.aspect_ratio,
            resolution=self.resolution,
            mode=GenerationMode.TEXT_TO_VIDEO,
        )

    def generate_scene(self, index: int, on_poll: Optional[Callable[[int, float], None]] = None) -> bool:
        """Produce one scene. Returns True when the clip is ready."""
        scene = self.scenes[index]
        scene.status = SceneStatus.GENERATING
        self.global_error = None

        try:
            result = self.video_client.generate_video(self.scene_params(index), on_poll=on_poll)
        except Exception:
            logger.exception("Scene %d generation failed", index + 1)
            self.global_error = f"Failed to generate Scene {index + 1}"
            scene.status = SceneStatus.ERROR
            return False

        scene.video_bytes = result.data
        scene.video_object = result.video
        scene.status = SceneStatus.DONE
        return True

    def generate_pending(
        self,
        on_scene: Optional[Callable[[int], None]] = None,
        on_poll: Optional[Callable[[int, float], None]] = None,
    ) -> int:
        """Produce every scene that is not done yet, in order.

        `on_scene(index)` fires before each scene starts; `on_poll` is handed
        to every scene's poll loop.
        """
        produced = 0
        last_error: str | None = None
        for index, scene in enumerate(self.scenes):
            if scene.status is SceneStatus.DONE:
                continue
            if on_scene is not None:
                on_scene(index)
            if self.generate_scene(index, on_poll=on_poll):
                produced += 1
            else:
                last_error = self.global_error
        # A later success must not hide an earlier failure.
        self.global_error = last_error
        return produced
