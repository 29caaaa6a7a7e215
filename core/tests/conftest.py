"""Shared fixtures: an in-process fake of the media services and a wired Engine."""

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from mediagraph.config import EngineConfig
from mediagraph.runtime.engine import Engine

DEFAULT_RESPONSES: dict[str, dict[str, Any]] = {
    "generate": {"success": True, "image": "data:image/png;base64,GENERATED"},
    "llm": {"success": True, "text": "llm says hi"},
    "video": {"success": True, "video": "data:video/mp4;base64,CLIP", "lastFrame": "data:image/png;base64,LAST"},
    "video-stitch": {"success": True, "video": "data:video/mp4;base64,STITCHED"},
    "save-video": {"success": True, "path": "/tmp/out.mp4"},
    "elevenlabs": {"success": True, "audio": "data:audio/mp3;base64,VOICE"},
    "caption-burn": {"success": True, "video": "data:video/mp4;base64,CAPTIONED"},
    "voice-swap": {"success": True, "video": "data:video/mp4;base64,SWAPPED"},
    "audio-isolate": {"success": True, "video": "data:video/mp4;base64,ISOLATED"},
    "audio-denoise": {"success": True, "video": "data:video/mp4;base64,DENOISED"},
    "video-upscale": {"success": True, "video": "data:video/mp4;base64,UPSCALED"},
    "green-screen": {"success": True, "video": "data:video/mp4;base64,GREEN"},
    "motion-capture": {"success": True, "video": "data:video/mp4;base64,MOCAP"},
    "remotion-render": {"success": True, "video": "data:video/mp4;base64,RENDER"},
    "music-generate": {"success": True, "audio": "data:audio/mp3;base64,MUSIC"},
    "sound-effects": {"success": True, "audio": "data:audio/mp3;base64,SFX"},
}

Response = dict[str, Any] | Callable[[dict[str, Any]], dict[str, Any]]


# ---- Fake media services (no network) ----
class FakeServices:
    """
    Records every call and answers from a response table.

    A response may be a dict or a callable taking the payload. `block(service)`
    makes calls to that service wait until the returned event is set.
    """

    def __init__(self, responses: dict[str, Response] | None = None):
        self.responses: dict[str, Response] = {**DEFAULT_RESPONSES, **(responses or {})}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.entered = asyncio.Event()

    def block(self, service: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[service] = gate
        return gate

    def called(self) -> list[str]:
        return [service for service, _ in self.calls]

    def payloads(self, service: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.calls if name == service]

    async def call(self, service: str, payload: dict[str, Any], token=None) -> dict[str, Any]:
        self.calls.append((service, payload))
        self.entered.set()
        gate = self.gates.get(service)
        if gate is not None:
            await gate.wait()
        response = self.responses.get(service, {"success": True})
        if callable(response):
            response = response(payload)
        return dict(response)


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig(
        history_limit=100,
        service_base_url="http://media.test",
        api_keys={},
        request_timeout=5.0,
        rate_limit_delays={},
    )


@pytest.fixture
def services() -> FakeServices:
    return FakeServices()


@pytest.fixture
def engine(services: FakeServices, config: EngineConfig) -> Engine:
    return Engine(services=services, config=config)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until `predicate()` holds."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0)

    await asyncio.wait_for(_poll(), timeout)
