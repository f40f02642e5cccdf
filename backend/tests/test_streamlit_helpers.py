"""Pure helper tests for the Streamlit page."""

import os
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import streamlit_app  # noqa: E402
from streamlit_app import (  # noqa: E402
    _can_submit,
    _format_elapsed,
    _hydrate_env_from_streamlit_secrets,
    _poll_reporter,
    _scene_reporter,
    _prompt_placeholder,
    _video_file_name,
)
from veo_studio.models import GenerationMode  # noqa: E402


class _FakeSecrets:
    def __init__(self, values):
        self._values = values

    def to_dict(self):
        return dict(self._values)


class _FakeStreamlit:
    def __init__(self, secrets):
        self.secrets = secrets


class _FakePlaceholder:
    def __init__(self):
        self.captions = []

    def caption(self, text):
        self.captions.append(text)


def test_secrets_fill_every_config_variable(monkeypatch):
    for name in ("API_KEY", "VEO_STUDIO_LOG_LEVEL", "GEMINI_OPENAI_BASE_URL", "VEO_SCRIPT_MODEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("VEO_SCRIPT_MODEL", "already-set")
    secrets = _FakeSecrets(
        {
            "API_KEY": "orig-key",
            "VEO_STUDIO_LOG_LEVEL": "DEBUG",
            "GEMINI_OPENAI_BASE_URL": "https://proxy/",
            "VEO_SCRIPT_MODEL": "from-secrets",
            "UNRELATED": "ignored",
        }
    )
    monkeypatch.setattr(streamlit_app, "st", _FakeStreamlit(secrets))
    monkeypatch.delenv("UNRELATED", raising=False)

    _hydrate_env_from_streamlit_secrets()

    assert os.environ["API_KEY"] == "orig-key"
    assert os.environ["VEO_STUDIO_LOG_LEVEL"] == "DEBUG"
    assert os.environ["GEMINI_OPENAI_BASE_URL"] == "https://proxy/"
    assert os.environ["VEO_SCRIPT_MODEL"] == "already-set"
    assert "UNRELATED" not in os.environ
    for name in ("API_KEY", "VEO_STUDIO_LOG_LEVEL", "GEMINI_OPENAI_BASE_URL"):
        monkeypatch.delenv(name, raising=False)


def test_poll_reporter_writes_elapsed_caption():
    placeholder = _FakePlaceholder()
    _poll_reporter(placeholder)(3, 65)
    assert placeholder.captions == ["Still rendering... check 3, 1m 05s elapsed."]


def test_prompt_placeholder_follows_mode():
    assert _prompt_placeholder(GenerationMode.TEXT_TO_VIDEO) == "Describe the video..."
    assert _prompt_placeholder("Extend Video") == "Describe what happens next..."
    assert "script" in _prompt_placeholder(GenerationMode.DIRECTOR)


def test_submit_needs_non_blank_prompt():
    assert not _can_submit("")
    assert not _can_submit("   \n")
    assert not _can_submit(None)
    assert _can_submit("a cat")


def test_elapsed_formatting():
    assert _format_elapsed(9.6) == "10s"
    assert _format_elapsed(125) == "2m 05s"
    assert _format_elapsed(-3) == "0s"


def test_video_file_names_are_slugged():
    assert _video_file_name("A Fox, at Dawn!") == "a-fox-at-dawn.mp4"
    assert _video_file_name("") == "veo-video.mp4"
    assert _video_file_name("Arrival", 3) == "scene-03-arrival.mp4"


def test_scene_reporter_names_the_rendering_scene():
    from types import SimpleNamespace

    placeholder = _FakePlaceholder()
    director = SimpleNamespace(scenes=[SimpleNamespace(title="Arrival"), SimpleNamespace(title="Chase")])

    _scene_reporter(placeholder, director)(1)

    assert placeholder.captions == ["Rendering scene 2 of 2: Chase"]
