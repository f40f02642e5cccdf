"""Request building and operation polling for the Veo client."""

from types import SimpleNamespace

import pytest
from google.genai import types

from veo_studio.ai.veo_client import VeoClient, build_video_request
from veo_studio.errors import VideoGenerationError
from veo_studio.models import (
    AspectRatio,
    GenerateVideoParams,
    GenerationMode,
    ImageFile,
    Resolution,
    VeoModel,
)

START = ImageFile(data=b"start-bytes", name="start.jpg", mime_type="image/jpeg")
END = ImageFile(data=b"end-bytes", name="end.png", mime_type=None)


def _video(uri="https://files.example/v1/files/abc%3Adownload?alt=media", video_bytes=None):
    return SimpleNamespace(uri=uri, video_bytes=video_bytes, mime_type="video/mp4")


def _done(video=None, error=None, response=True):
    if not response:
        return SimpleNamespace(done=True, error=error, response=None, name="operations/1")
    videos = [SimpleNamespace(video=video)] if video is not None else []
    return SimpleNamespace(
        done=True,
        error=error,
        response=SimpleNamespace(generated_videos=videos),
        name="operations/1",
    )


class _FakeOperations:
    def __init__(self, sequence):
        self._sequence = list(sequence)
        self.calls = 0

    def get(self, operation):
        self.calls += 1
        return self._sequence.pop(0)


class _FakeModels:
    def __init__(self, first):
        self._first = first
        self.requests = []

    def generate_videos(self, **kwargs):
        self.requests.append(kwargs)
        return self._first


class _FakeGenAI:
    def __init__(self, first, later=()):
        self.models = _FakeModels(first)
        self.operations = _FakeOperations(later)


class _FakeSession:
    def __init__(self, status_code=200, content=b"mp4-bytes"):
        self._status_code = status_code
        self._content = content
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        return SimpleNamespace(
            ok=200 <= self._status_code < 400,
            status_code=self._status_code,
            content=self._content,
        )


def test_text_request_has_single_video_config_and_prompt():
    request = build_video_request(
        GenerateVideoParams(prompt="A fox at dawn", resolution=Resolution.P1080, aspect_ratio=AspectRatio.PORTRAIT)
    )

    assert request["model"] == VeoModel.VEO_FAST.value
    assert request["prompt"] == "A fox at dawn"
    assert "image" not in request
    config = request["config"]
    assert config.number_of_videos == 1
    assert config.resolution == "1080p"
    assert config.aspect_ratio == "9:16"


def test_blank_prompt_is_left_out_and_start_frame_becomes_image():
    request = build_video_request(GenerateVideoParams(prompt="", start_frame=START))

    assert "prompt" not in request
    assert request["image"].image_bytes == b"start-bytes"
    assert request["image"].mime_type == "image/jpeg"


def test_frames_mode_uses_end_frame_with_png_default():
    request = build_video_request(
        GenerateVideoParams(
            prompt="walk",
            mode=GenerationMode.FRAMES_TO_VIDEO,
            start_frame=START,
            end_frame=END,
        )
    )

    last_frame = request["config"].last_frame
    assert last_frame.image_bytes == b"end-bytes"
    assert last_frame.mime_type == "image/png"


def test_looping_frames_reuse_start_frame_as_last_frame():
    request = build_video_request(
        GenerateVideoParams(
            prompt="loop",
            mode=GenerationMode.FRAMES_TO_VIDEO,
            start_frame=START,
            end_frame=END,
            is_looping=True,
        )
    )

    assert request["config"].last_frame.image_bytes == b"start-bytes"


def test_reference_images_become_asset_references():
    request = build_video_request(
        GenerateVideoParams(
            prompt="refs",
            mode=GenerationMode.REFERENCES_TO_VIDEO,
            reference_images=[START, END],
        )
    )

    references = request["config"].reference_images
    assert len(references) == 2
    assert all(ref.reference_type == types.VideoGenerationReferenceType.ASSET for ref in references)
    assert references[1].image.mime_type == "image/png"


def test_reference_mode_without_images_sends_no_references():
    request = build_video_request(
        GenerateVideoParams(prompt="refs", mode=GenerationMode.REFERENCES_TO_VIDEO)
    )
    assert request["config"].reference_images is None


def test_extend_passes_video_and_omits_aspect_ratio():
    source = types.Video(uri="https://files.example/v1/files/prev")
    request = build_video_request(
        GenerateVideoParams(prompt="next", mode=GenerationMode.EXTEND_VIDEO, input_video_object=source)
    )

    assert request["video"] is source
    assert request["config"].aspect_ratio is None
    assert request["config"].resolution == "720p"


def test_extend_without_video_fails():
    with pytest.raises(VideoGenerationError, match="input video object is required"):
        build_video_request(GenerateVideoParams(prompt="next", mode=GenerationMode.EXTEND_VIDEO))


def test_generate_video_polls_until_done_then_downloads():
    pending = SimpleNamespace(done=False, name="operations/1")
    fake = _FakeGenAI(pending, later=[pending, _done(_video())])
    session = _FakeSession()
    sleeps = []
    polls = []

    client = VeoClient(
        api_key="gem-key",
        poll_interval_seconds=10,
        client=fake,
        session=session,
        sleep=sleeps.append,
    )
    result = client.generate_video(
        GenerateVideoParams(prompt="A fox"),
        on_poll=lambda attempt, elapsed: polls.append(attempt),
    )

    assert sleeps == [10.0, 10.0]
    assert polls == [1, 2]
    assert fake.operations.calls == 2
    assert fake.models.requests[0]["prompt"] == "A fox"
    assert result.data == b"mp4-bytes"
    assert result.uri == "https://files.example/v1/files/abc:download?alt=media"
    url, params, _timeout = session.calls[0]
    assert url == result.uri
    assert params == {"key": "gem-key"}


def test_already_done_operation_is_not_polled():
    fake = _FakeGenAI(_done(_video()))
    sleeps = []
    client = VeoClient(api_key="k", client=fake, session=_FakeSession(), sleep=sleeps.append)

    client.generate_video(GenerateVideoParams(prompt="x"))

    assert sleeps == []
    assert fake.operations.calls == 0


def test_inline_video_bytes_skip_download():
    session = _FakeSession()
    fake = _FakeGenAI(_done(_video(uri=None, video_bytes=b"inline")))
    client = VeoClient(api_key="k", client=fake, session=session, sleep=lambda _s: None)

    result = client.generate_video(GenerateVideoParams(prompt="x"))

    assert result.data == b"inline"
    assert session.calls == []


@pytest.mark.parametrize(
    "operation, message",
    [
        (_done(error={"code": 3, "message": "Prompt was blocked."}), "Prompt was blocked."),
        (_done(response=False), "Operation failed."),
        (_done(video=None), "No videos were generated."),
    ],
)
def test_finished_operation_failures(operation, message):
    client = VeoClient(api_key="k", client=_FakeGenAI(operation), session=_FakeSession(), sleep=lambda _s: None)

    with pytest.raises(VideoGenerationError) as excinfo:
        client.generate_video(GenerateVideoParams(prompt="x"))
    assert str(excinfo.value) == message


def test_download_failure_reports_status():
    client = VeoClient(
        api_key="k",
        client=_FakeGenAI(_done(_video())),
        session=_FakeSession(status_code=403),
        sleep=lambda _s: None,
    )

    with pytest.raises(VideoGenerationError, match="Failed to fetch video: 403"):
        client.generate_video(GenerateVideoParams(prompt="x"))


def test_missing_api_key_fails_before_submitting():
    client = VeoClient(api_key=None)

    assert not client.is_configured
    with pytest.raises(VideoGenerationError, match="GEMINI_API_KEY"):
        client.generate_video(GenerateVideoParams(prompt="x"))
