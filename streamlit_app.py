"""Main Streamlit UI for Veo Studio.

Compose a prompt (optionally with frames or reference images), submit it and
wait while the Veo job is polled, then play the clip back. Director mode
splits a full script into scenes and produces them one by one.
"""

from __future__ import annotations

import html
import logging
import os
import re
import sys
from pathlib import Path
from typing import Any, Callable

import streamlit as st
from dotenv import load_dotenv

# Ensure backend package is importable when running `streamlit run streamlit_app.py`.
ROOT = Path(__file__).resolve().parent
BACKEND_ROOT = ROOT / "backend"
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))
load_dotenv(ROOT / ".env", override=False)

SECRET_ENV_KEYS = (
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "API_KEY",
    "GEMINI_OPENAI_BASE_URL",
    "VEO_STUDIO_LOG_LEVEL",
    "VEO_DEFAULT_MODEL",
    "VEO_POLL_INTERVAL_SECONDS",
    "VEO_SCRIPT_MODEL",
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "OPENAI_FALLBACK_OPENAI_MODEL",
)


def _hydrate_env_from_streamlit_secrets() -> None:
    """Load API config from Streamlit Secrets into env when not already set."""
    try:
        secrets = st.secrets.to_dict()
    except Exception:
        # No secrets.toml outside Streamlit Cloud.
        return

    gemini_block = secrets.get("gemini")
    if isinstance(gemini_block, dict):
        mapping = {
            "api_key": "GEMINI_API_KEY",
            "video_model": "VEO_DEFAULT_MODEL",
            "script_model": "VEO_SCRIPT_MODEL",
        }
        for secret_key, env_key in mapping.items():
            value = gemini_block.get(secret_key)
            if isinstance(value, str) and value.strip() and not os.getenv(env_key):
                os.environ[env_key] = value.strip()

    for key, value in secrets.items():
        if not isinstance(key, str) or not isinstance(value, (str, int, float)):
            continue
        value = str(value).strip()
        if not value or os.getenv(key):
            continue
        if key in SECRET_ENV_KEYS or key.startswith(
            ("OPENAI_API_KEY_FALLBACK_", "OPENAI_BASE_URL_FALLBACK_", "OPENAI_MODEL_FALLBACK_")
        ):
            os.environ[key] = value


def _configure_logging() -> None:
    level = os.getenv("VEO_STUDIO_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


_hydrate_env_from_streamlit_secrets()
_configure_logging()

from veo_studio.app import create_app  # noqa: E402
from veo_studio.errors import StudioError  # noqa: E402
from veo_studio.models import (  # noqa: E402
    SELECTABLE_MODES,
    AppState,
    AspectRatio,
    GenerateVideoParams,
    GenerationMode,
    ImageFile,
    Resolution,
    SceneStatus,
    VeoModel,
)
from veo_studio.session import StudioSession  # noqa: E402

logger = logging.getLogger("veo_studio.ui")

ASPECT_RATIO_LABELS = {
    AspectRatio.LANDSCAPE: "Landscape (16:9)",
    AspectRatio.PORTRAIT: "Portrait (9:16)",
}
RESOLUTION_LABELS = {
    Resolution.P720: "720p",
    Resolution.P1080: "1080p",
}
PROMPT_PLACEHOLDERS = {
    GenerationMode.TEXT_TO_VIDEO: "Describe the video...",
    GenerationMode.FRAMES_TO_VIDEO: "Describe motion between frames...",
    GenerationMode.REFERENCES_TO_VIDEO: "Describe video using refs...",
    GenerationMode.EXTEND_VIDEO: "Describe what happens next...",
    GenerationMode.DIRECTOR: "Paste your full cinematic script/storyboard here for AI analysis...",
}
IMAGE_TYPES = ["png", "jpg", "jpeg", "webp"]


@st.cache_resource
def _get_container() -> dict[str, Any]:
    return create_app()


def _prompt_placeholder(mode: GenerationMode | str) -> str:
    return PROMPT_PLACEHOLDERS[GenerationMode(mode)]


def _can_submit(prompt: str | None) -> bool:
    return bool(prompt and prompt.strip())


def _format_elapsed(seconds: float) -> str:
    total = max(0, int(round(seconds)))
    minutes, secs = divmod(total, 60)
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


def _video_file_name(prompt: str | None, scene_number: int | None = None) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (prompt or "").lower()).strip("-")[:40].strip("-")
    stem = slug or "veo-video"
    if scene_number is not None:
        stem = f"scene-{scene_number:02d}-{stem}"
    return f"{stem}.mp4"


def _rerun() -> None:
    try:
        st.rerun()
    except AttributeError:
        st.experimental_rerun()


def _init_state(container: dict[str, Any]) -> None:
    config = container["config"]
    defaults = {
        "vs_prompt": "",
        "vs_mode": GenerationMode.TEXT_TO_VIDEO,
        "vs_model": config.default_model,
        "vs_aspect_ratio": AspectRatio.LANDSCAPE,
        "vs_resolution": Resolution.P720,
        "vs_is_looping": False,
        "vs_status_line": "Ready.",
    }
    for key, value in defaults.items():
        st.session_state.setdefault(key, value)
    if "vs_session" not in st.session_state:
        st.session_state["vs_session"] = StudioSession(
            video_client=container["video_client"],
            ai_client=container["ai_client"],
        )


def _session() -> StudioSession:
    return st.session_state["vs_session"]


def _inject_styles() -> None:
    st.markdown(
        """
        <style>
        .stApp {
            background: radial-gradient(circle at top, rgba(49, 46, 129, 0.25), #000 60%);
            color: #e5e7eb;
        }
        .vs-title {
            text-align: center;
            font-size: 3rem;
            font-weight: 600;
            letter-spacing: -0.04em;
            background: linear-gradient(90deg, #818cf8, #a855f7, #ec4899);
            -webkit-background-clip: text;
            -webkit-text-fill-color: transparent;
            margin-bottom: 0.2rem;
        }
        .vs-tagline {
            text-align: center;
            color: #9ca3af;
            font-weight: 300;
            font-size: 1.5rem;
        }
        .vs-error {
            border: 1px solid rgba(239, 68, 68, 0.3);
            background: rgba(127, 29, 29, 0.12);
            border-radius: 16px;
            padding: 1.5rem;
            text-align: center;
        }
        .vs-error h2 { color: #f87171; }
        .vs-scene-prompt { color: #9ca3af; font-style: italic; }
        .vs-no-footage {
            height: 9rem;
            display: flex;
            align-items: center;
            justify-content: center;
            border: 1px solid #374151;
            border-radius: 10px;
            color: #4b5563;
            font-size: 0.75rem;
            font-weight: 700;
            letter-spacing: 0.2em;
            text-transform: uppercase;
        }
        </style>
        """,
        unsafe_allow_html=True,
    )


def _apply_form_presets(session: StudioSession) -> None:
    """Copy pending form presets (set by Extend) into widget state before widgets render."""
    presets = session.form_presets
    if presets is None or st.session_state.get("vs_presets_applied") is presets:
        return
    st.session_state["vs_prompt"] = presets.prompt
    st.session_state["vs_mode"] = GenerationMode(presets.mode)
    st.session_state["vs_model"] = VeoModel(presets.model)
    st.session_state["vs_aspect_ratio"] = AspectRatio(presets.aspect_ratio)
    st.session_state["vs_resolution"] = Resolution(presets.resolution)
    st.session_state["vs_is_looping"] = presets.is_looping
    st.session_state["vs_presets_applied"] = presets


def _settings_panel() -> None:
    st.sidebar.markdown("## Settings")
    st.sidebar.selectbox("Model", list(VeoModel), format_func=lambda m: m.value, key="vs_model")
    st.sidebar.selectbox(
        "Aspect Ratio",
        list(AspectRatio),
        format_func=ASPECT_RATIO_LABELS.get,
        key="vs_aspect_ratio",
    )
    st.sidebar.selectbox(
        "Resolution",
        list(Resolution),
        format_func=RESOLUTION_LABELS.get,
        key="vs_resolution",
    )
    st.sidebar.caption("Only 720p clips can be extended.")
    st.sidebar.markdown("---")
    st.sidebar.caption(f"Status: {st.session_state['vs_status_line']}")


def _read_upload(upload: Any) -> ImageFile | None:
    if upload is None:
        return None
    try:
        return ImageFile.from_upload(upload)
    except ValueError as exc:
        logger.error("Could not read %s: %s", getattr(upload, "name", "upload"), exc)
        st.warning(f"Could not read {getattr(upload, 'name', 'image')}.")
        return None


def _mode_inputs(mode: GenerationMode) -> dict[str, Any]:
    """Render the uploads the selected mode needs and return them as param fields."""
    inputs: dict[str, Any] = {}
    if mode is GenerationMode.FRAMES_TO_VIDEO:
        cols = st.columns(2)
        inputs["start_frame"] = _read_upload(
            cols[0].file_uploader("Start frame", type=IMAGE_TYPES, key="vs_start_frame")
        )
        looping = cols[1].checkbox("Loop back to the start frame", key="vs_is_looping")
        if not looping:
            inputs["end_frame"] = _read_upload(
                cols[1].file_uploader("End frame", type=IMAGE_TYPES, key="vs_end_frame")
            )
        inputs["is_looping"] = looping
    elif mode is GenerationMode.REFERENCES_TO_VIDEO:
        uploads = st.file_uploader(
            "Reference images",
            type=IMAGE_TYPES,
            accept_multiple_files=True,
            key="vs_reference_images",
        )
        inputs["reference_images"] = [img for img in map(_read_upload, uploads or []) if img]
    elif mode is GenerationMode.TEXT_TO_VIDEO:
        inputs["start_frame"] = _read_upload(
            st.file_uploader("Optional start image", type=IMAGE_TYPES, key="vs_text_start_frame")
        )
    elif mode is GenerationMode.EXTEND_VIDEO:
        st.info("Extending the previous clip. Describe what happens next.")
    return inputs


def _poll_reporter(placeholder: Any) -> Callable[[int, float], None]:
    def _report(attempt: int, elapsed: float) -> None:
        placeholder.caption(f"Still rendering... check {attempt}, {_format_elapsed(elapsed)} elapsed.")

    return _report


def _scene_reporter(placeholder: Any, director: Any) -> Callable[[int], None]:
    def _report(index: int) -> None:
        scene = director.scenes[index]
        placeholder.caption(f"Rendering scene {index + 1} of {len(director.scenes)}: {scene.title}")

    return _report


def _prompt_form(session: StudioSession) -> None:
    st.markdown("<p class='vs-tagline'>What story will you tell today?</p>", unsafe_allow_html=True)

    presets = session.form_presets
    modes = list(SELECTABLE_MODES)
    if presets is not None and GenerationMode(presets.mode) is GenerationMode.EXTEND_VIDEO:
        modes.insert(0, GenerationMode.EXTEND_VIDEO)
    if st.session_state["vs_mode"] not in modes:
        st.session_state["vs_mode"] = GenerationMode.TEXT_TO_VIDEO

    mode = st.selectbox("Mode", modes, format_func=lambda m: m.value, key="vs_mode")
    prompt = st.text_area(
        "Prompt",
        key="vs_prompt",
        placeholder=_prompt_placeholder(mode),
        height=180 if mode is GenerationMode.DIRECTOR else 110,
    )
    inputs = _mode_inputs(mode)

    label = "Analyze Script" if mode is GenerationMode.DIRECTOR else "Generate"
    if not st.button(label, type="primary", disabled=not _can_submit(prompt), use_container_width=True):
        return

    model = st.session_state["vs_model"]
    aspect_ratio = st.session_state["vs_aspect_ratio"]
    resolution = st.session_state["vs_resolution"]

    if mode is GenerationMode.DIRECTOR:
        with st.spinner("Analyzing script..."):
            try:
                session.start_director(prompt, model=model, aspect_ratio=aspect_ratio, resolution=resolution)
            except Exception as exc:
                logger.error("Script analysis failed: %s", exc)
                st.error("Analysis failed. Try simplifying the script.")
                return
        st.session_state["vs_status_line"] = f"Storyboard ready ({len(session.director.scenes)} scenes)."
        _rerun()
        return

    params = GenerateVideoParams(
        prompt=prompt,
        model=model,
        aspect_ratio=aspect_ratio,
        resolution=resolution,
        mode=mode,
        input_video_object=(
            presets.input_video_object
            if presets is not None and mode is GenerationMode.EXTEND_VIDEO
            else None
        ),
        **inputs,
    )
    _run_generation(session, lambda on_poll: session.generate(params, on_poll=on_poll))


def _run_generation(session: StudioSession, action: Callable[[Callable[[int, float], None]], bool]) -> None:
    progress = st.empty()
    with st.spinner("Generating your video. This usually takes a few minutes..."):
        ok = action(_poll_reporter(progress))
    progress.empty()
    st.session_state["vs_status_line"] = "Video ready." if ok else "Generation failed."
    _rerun()


def _result_view(session: StudioSession) -> None:
    video = session.video
    if video is None:
        return
    st.video(video.data, format=video.mime_type)

    prompt = session.last_params.prompt if session.last_params else ""
    cols = st.columns(4)
    if cols[0].button("Retry", use_container_width=True):
        _run_generation(session, lambda on_poll: session.retry(on_poll=on_poll))
    if cols[1].button("New Video", use_container_width=True):
        session.new_video()
        st.session_state["vs_status_line"] = "Ready."
        _rerun()
    if cols[2].button("Extend", disabled=not session.can_extend, use_container_width=True):
        session.extend()
        st.session_state["vs_status_line"] = "Extending the last clip."
        _rerun()
    cols[3].download_button(
        "Download",
        data=video.data,
        file_name=_video_file_name(prompt),
        mime=video.mime_type,
        use_container_width=True,
    )


def _error_view(session: StudioSession) -> None:
    st.markdown(
        f"""
        <div class="vs-error">
          <h2>Cut! Something went wrong.</h2>
          <p>{html.escape(session.error_message or "Unknown error")}</p>
        </div>
        """,
        unsafe_allow_html=True,
    )
    if st.button("Try Again", type="primary", use_container_width=True):
        session.new_video()
        st.session_state["vs_status_line"] = "Ready."
        _rerun()


def _director_view(session: StudioSession) -> None:
    director = session.director
    if director is None:
        return

    head, action_col, new_col = st.columns([3, 1, 1])
    head.subheader("Project Storyboard")
    head.caption("Each scene follows the previous for visual continuity.")
    pending = len(director.scenes) - director.completed_count
    if action_col.button("Produce All", disabled=pending == 0, use_container_width=True):
        scene_line = st.empty()
        progress = st.empty()
        with st.spinner(f"Directing {pending} scenes..."):
            director.generate_pending(
                on_scene=_scene_reporter(scene_line, director),
                on_poll=_poll_reporter(progress),
            )
        scene_line.empty()
        progress.empty()
        st.session_state["vs_status_line"] = f"{director.completed_count}/{len(director.scenes)} scenes ready."
        _rerun()
    if new_col.button("New Project", use_container_width=True):
        session.new_video()
        st.session_state["vs_status_line"] = "Ready."
        _rerun()

    if director.global_error:
        st.error(director.global_error)

    for idx, scene in enumerate(director.scenes):
        with st.container(border=True):
            text_col, video_col = st.columns([3, 2])
            text_col.markdown(f"**{idx + 1}. {scene.title}**")
            text_col.markdown(
                f"<p class='vs-scene-prompt'>\"{html.escape(scene.prompt)}\"</p>",
                unsafe_allow_html=True,
            )

            if scene.status is SceneStatus.IDLE:
                produce = text_col.button(f"Produce Scene {idx + 1}", key=f"vs_produce_{scene.id}")
            elif scene.status is SceneStatus.ERROR:
                produce = text_col.button("Retry", key=f"vs_retry_{scene.id}")
            else:
                produce = False
                if scene.status is SceneStatus.GENERATING:
                    text_col.caption("Directing Scene...")

            if produce:
                progress = text_col.empty()
                with st.spinner("Directing Scene..."):
                    director.generate_scene(idx, on_poll=_poll_reporter(progress))
                _rerun()

            if scene.video_bytes:
                video_col.video(scene.video_bytes)
                video_col.download_button(
                    "Download",
                    data=scene.video_bytes,
                    file_name=_video_file_name(scene.title, idx + 1),
                    mime="video/mp4",
                    key=f"vs_dl_{scene.id}",
                )
            else:
                video_col.markdown("<div class='vs-no-footage'>No Footage</div>", unsafe_allow_html=True)


def _studio_tab(session: StudioSession) -> None:
    state = session.state
    if state is AppState.IDLE:
        _prompt_form(session)
    elif state is AppState.SUCCESS:
        _result_view(session)
    elif state is AppState.ERROR:
        _error_view(session)
    elif state is AppState.DIRECTOR_READY:
        _director_view(session)
    else:
        # A run was interrupted mid-generation; offer a way back.
        st.info("A generation is still in progress or was interrupted.")
        if st.button("Start Over"):
            session.new_video()
            _rerun()


def _history_tab(session: StudioSession) -> None:
    st.subheader("Recent Generations")
    history = session.history
    if not history:
        st.info("No generations yet.")
        return

    for index, item in enumerate(history):
        st.markdown(f"**[{html.escape(item['mode'])}]** {html.escape(item['time'])} | {item['resolution']}")
        st.caption(item["prompt"][:280] or "(no prompt)")
        if st.button("Reuse Prompt", key=f"vs_hist_{index}"):
            session.new_video()
            # Applied on the next run, before the prompt widget exists.
            st.session_state["vs_pending_prompt"] = item["prompt"]
            st.session_state["vs_status_line"] = "History prompt loaded."
            _rerun()


def main() -> None:
    st.set_page_config(page_title="Veo Studio", layout="wide", initial_sidebar_state="collapsed")

    container = _get_container()
    _init_state(container)
    _inject_styles()

    session = _session()
    _apply_form_presets(session)
    if "vs_pending_prompt" in st.session_state:
        st.session_state["vs_prompt"] = st.session_state.pop("vs_pending_prompt")

    st.markdown("<h1 class='vs-title'>Veo Studio</h1>", unsafe_allow_html=True)
    if not container["video_client"].is_configured:
        st.warning("No Gemini API key found. Add GEMINI_API_KEY to Streamlit Secrets or your local .env.")
    if not container["ai_client"].is_live:
        st.caption("Director mode is offline: scripts are split locally until a chat provider is configured.")

    _settings_panel()

    tab_studio, tab_history = st.tabs(["Studio", "History"])
    with tab_studio:
        _studio_tab(session)
    with tab_history:
        _history_tab(session)


if __name__ == "__main__":
    main()
