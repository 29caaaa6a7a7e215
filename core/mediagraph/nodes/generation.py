"""
Service-backed node behaviors.

Each behavior gathers its inputs (falling back to stored inputs when
regenerating), names the missing ones, and maps one service call onto the
node's output fields.
"""

from typing import Any

from mediagraph.errors import ExternalServiceError
from mediagraph.graph.models import NodeType
from mediagraph.nodes.base import NodeBehavior, NodeContext

DEFAULT_VOICE_ID = "pNInz6obpg8nEByWQX7X"
DEFAULT_VOICE_NAME = "Adam"
DEFAULT_GREEN_SCREEN_PROMPT = (
    "same person standing on solid bright green screen background, full body visible, "
    "same pose, same clothing, same appearance, studio lighting"
)
MAX_REFERENCE_IMAGES = 3


def _status_fields() -> dict[str, Any]:
    return {"status": "idle", "error": None}


def _require(result: dict[str, Any], key: str, service: str, message: str) -> Any:
    value = result.get(key)
    if not value:
        raise ExternalServiceError(service, result.get("error") or message)
    return value


# ---------------------------------------------------------------------------
# Images and text
# ---------------------------------------------------------------------------


class NanoBananaBehavior(NodeBehavior):
    """Text (+ optional images) to image. Feeds the global image history."""

    node_type = NodeType.NANO_BANANA
    service = "generate"
    default_size = (300.0, 300.0)

    def default_data(self) -> dict[str, Any]:
        return {
            "inputImages": [],
            "inputPrompt": None,
            "outputImage": None,
            "aspectRatio": "1:1",
            "resolution": "1K",
            "model": "nano-banana-pro",
            "useGoogleSearch": False,
            **_status_fields(),
        }

    def gather(self, ctx: NodeContext) -> dict[str, Any]:
        resolved = ctx.resolve()
        return {
            "inputImages": ctx.effective(resolved.images, "inputImages") or [],
            "inputPrompt": ctx.effective(resolved.text, "inputPrompt"),
        }

    def validate(self, ctx: NodeContext, inputs: dict[str, Any]) -> list[str]:
        return [] if inputs["inputPrompt"] else ["Missing text input"]

    def payload(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        data = ctx.data
        return {
            "images": inputs["inputImages"],
            "prompt": inputs["inputPrompt"],
            "aspectRatio": data.get("aspectRatio"),
            "resolution": data.get("resolution"),
            "model": data.get("model"),
            "useGoogleSearch": data.get("useGoogleSearch", False),
        }

    def outputs(self, ctx: NodeContext, inputs: dict[str, Any], result: dict[str, Any]) -> dict[str, Any]:
        image = _require(result, "image", self.service, "Generation failed")
        if ctx.image_history is not None:
            ctx.image_history.add(
                image=image,
                prompt=inputs["inputPrompt"],
                aspect_ratio=ctx.data.get("aspectRatio"),
                model=ctx.data.get("model"),
            )
        return {"outputImage": image}


class LLMGenerateBehavior(NodeBehavior):
    """
    Text generation from an instruction (`text`) and/or content (`context`).

    Connected images are sent as multimodal context and passed through on
    `outputImages` for downstream image consumers.
    """

    node_type = NodeType.LLM_GENERATE
    service = "llm"
    default_size = (320.0, 360.0)
    failure_message = "LLM generation failed"

    def default_data(self) -> dict[str, Any]:
        return {
            "inputPrompt": None,
            "inputContext": None,
            "inputImages": [],
            "outputText": None,
            "outputImages": [],
            "provider": "google",
            "model": "gemini-3-flash",
            "temperature": 0.7,
            "maxTokens": 1024,
            "useGoogleSearch": True,
            **_status_fields(),
        }

    def gather(self, ctx: NodeContext) -> dict[str, Any]:
        resolved = ctx.resolve()
        images = ctx.effective(resolved.images, "inputImages") or []
        return {
            "inputPrompt": ctx.effective(resolved.text, "inputPrompt"),
            "inputContext": ctx.effective(resolved.context, "inputContext"),
            "inputImages": images,
            "outputImages": images,
        }

    def validate(self, ctx: NodeContext, inputs: dict[str, Any]) -> list[str]:
        if inputs["inputPrompt"] or inputs["inputContext"]:
            return []
        return ["Missing text or context input"]

    def payload(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        data = ctx.data
        return {
            "prompt": combine_prompt(inputs["inputPrompt"], inputs["inputContext"]),
            "images": inputs["inputImages"],
            "provider": data.get("provider"),
            "model": data.get("model"),
            "temperature": data.get("temperature"),
            "maxTokens": data.get("maxTokens"),
            "useGoogleSearch": data.get("useGoogleSearch") or False,
        }

    def outputs(self, ctx: NodeContext, inputs: dict[str, Any], result: dict[str, Any]) -> dict[str, Any]:
        return {"outputText": _require(result, "text", self.service, self.failure_message)}


def combine_prompt(text: str | None, context: str | None) -> str:
    """Instruction and content joined by a separator when both are present."""
    if text and context:
        return f"{text}\n\n---\n\n{context}"
    return text or context or ""


# ---------------------------------------------------------------------------
# Video generation
# ---------------------------------------------------------------------------


class VideoGenerateBehavior(NodeBehavior):
    """
    Start frame + prompt to video clip.

    Returns the clip and its last frame (for chaining into the next
    generation). Followed by a fixed rate-limit pause, see
    EngineConfig.rate_limit_delays.
    """

    node_type = NodeType.VIDEO_GENERATE
    service = "video"
    default_size = (320.0, 380.0)
    failure_message = "Video failed"

    def default_data(self) -> dict[str, Any]:
        return {
            "inputImage": None,
            "inputPrompt": None,
            "inputReferenceImages": [],
            "outputVideo": None,
            "lastFrame": None,
            "duration": 4,
            **_status_fields(),
        }

    def gather(self, ctx: NodeContext) -> dict[str, Any]:
        resolved = ctx.resolve()
        return {
            "inputImage": ctx.effective(resolved.image, "inputImage"),
            "inputPrompt": ctx.effective(resolved.text, "inputPrompt"),
            "inputReferenceImages": ctx.effective(resolved.reference_images, "inputReferenceImages") or [],
        }

    def validate(self, ctx: NodeContext, inputs: dict[str, Any]) -> list[str]:
        if inputs["inputImage"] and inputs["inputPrompt"]:
            return []
        return ["Missing image or prompt input"]

    def payload(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        payload = {
            "prompt": inputs["inputPrompt"],
            "image": inputs["inputImage"],
            "duration": ctx.data.get("duration"),
        }
        if inputs["inputReferenceImages"]:
            payload["referenceImages"] = inputs["inputReferenceImages"][:MAX_REFERENCE_IMAGES]
        return payload

    def outputs(self, ctx: NodeContext, inputs: dict[str, Any], result: dict[str, Any]) -> dict[str, Any]:
        return {"outputVideo": result.get("video"), "lastFrame": result.get("lastFrame")}


class MotionCaptureBehavior(NodeBehavior):
    """Animates a reference image with the motion of a source video."""

    node_type = NodeType.MOTION_CAPTURE
    service = "motion-capture"
    default_size = (320.0, 400.0)
    failure_message = "Motion capture failed"

    def default_data(self) -> dict[str, Any]:
        return {
            "referenceImage": None,
            "sourceVideo": None,
            "characterOrientation": "image",
            "resolution": "720p",
            "prompt": "",
            "outputVideo": None,
            "lastFrame": None,
            **_status_fields(),
        }

    def gather(self, ctx: NodeContext) -> dict[str, Any]:
        resolved = ctx.resolve()
        return {
            "referenceImage": ctx.effective(resolved.image, "referenceImage"),
            "sourceVideo": ctx.effective(resolved.video, "sourceVideo"),
        }

    def validate(self, ctx: NodeContext, inputs: dict[str, Any]) -> list[str]:
        if inputs["referenceImage"] and inputs["sourceVideo"]:
            return []
        return ["Missing reference image or source video"]

    def payload(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        payload = {
            "referenceImage": inputs["referenceImage"],
            "sourceVideo": inputs["sourceVideo"],
            "characterOrientation": ctx.data.get("characterOrientation"),
            "mode": ctx.data.get("resolution"),
        }
        if ctx.data.get("prompt"):
            payload["prompt"] = ctx.data["prompt"]
        return payload

    def outputs(self, ctx: NodeContext, inputs: dict[str, Any], result: dict[str, Any]) -> dict[str, Any]:
        return {"outputVideo": result.get("video"), "lastFrame": result.get("lastFrame")}


class VideoComposerBehavior(NodeBehavior):
    """Renders a composition from connected images, videos and optional code."""

    node_type = NodeType.VIDEO_COMPOSER
    service = "remotion-render"
    default_size = (360.0, 420.0)
    failure_message = "Render failed"

    def default_data(self) -> dict[str, Any]:
        return {
            "inputImages": [],
            "inputVideos": [],
            "inputCode": None,
            "aspectRatio": "16:9",
            "fps": 30,
            "duration": 10,
            "outputVideo": None,
            **_status_fields(),
        }

    def gather(self, ctx: NodeContext) -> dict[str, Any]:
        resolved = ctx.resolve()
        return {
            "inputImages": ctx.effective(resolved.images, "inputImages") or [],
            "inputVideos": ctx.effective(resolved.videos, "inputVideos") or [],
            "inputCode": ctx.effective(resolved.text, "inputCode"),
        }

    def validate(self, ctx: NodeContext, inputs: dict[str, Any]) -> list[str]:
        if inputs["inputImages"] or inputs["inputVideos"]:
            return []
        return ["Missing image or video input"]

    def payload(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        data = ctx.data
        return {
            "code": inputs["inputCode"],
            "videos": inputs["inputVideos"],
            "images": inputs["inputImages"],
            "duration": data.get("duration"),
            "aspectRatio": data.get("aspectRatio"),
            "fps": data.get("fps"),
        }

    def outputs(self, ctx: NodeContext, inputs: dict[str, Any], result: dict[str, Any]) -> dict[str, Any]:
        return {"outputVideo": _require(result, "video", self.service, self.failure_message)}


# ---------------------------------------------------------------------------
# Video transforms (one connected video in, one video out)
# ---------------------------------------------------------------------------


class VideoTransformBehavior(NodeBehavior):
    """Base for nodes that take the connected video and return a processed one."""

    default_size = (320.0, 340.0)
    failure_message = "Processing failed"

    def default_data(self) -> dict[str, Any]:
        return {"inputVideo": None, "outputVideo": None, **_status_fields()}

    def gather(self, ctx: NodeContext) -> dict[str, Any]:
        return {"inputVideo": ctx.effective(ctx.resolve().video, "inputVideo")}

    def validate(self, ctx: NodeContext, inputs: dict[str, Any]) -> list[str]:
        return [] if inputs["inputVideo"] else ["Missing video input"]

    def payload(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        return {"video": inputs["inputVideo"]}

    def outputs(self, ctx: NodeContext, inputs: dict[str, Any], result: dict[str, Any]) -> dict[str, Any]:
        return {"outputVideo": _require(result, "video", self.service_name(ctx, inputs), self.failure_message)}


class CaptionBehavior(VideoTransformBehavior):
    """Burns word-level captions into the video."""

    node_type = NodeType.CAPTION
    service = "caption-burn"
    default_size = (340.0, 420.0)
    failure_message = "Caption burn failed"

    def default_data(self) -> dict[str, Any]:
        return {**super().default_data(), "style": {}, "transcription": None}

    def payload(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        return {
            "video": inputs["inputVideo"],
            "words": ctx.data.get("transcription"),
            "style": ctx.data.get("style") or {},
        }

    def outputs(self, ctx: NodeContext, inputs: dict[str, Any], result: dict[str, Any]) -> dict[str, Any]:
        outputs = super().outputs(ctx, inputs, result)
        if result.get("words"):
            outputs["transcription"] = result["words"]
        return outputs


class VoiceSwapBehavior(VideoTransformBehavior):
    node_type = NodeType.VOICE_SWAP
    service = "voice-swap"
    failure_message = "Voice swap failed"

    def default_data(self) -> dict[str, Any]:
        return {**super().default_data(), "voiceId": DEFAULT_VOICE_ID, "voiceName": DEFAULT_VOICE_NAME}

    def payload(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        return {"video": inputs["inputVideo"], "voiceId": ctx.data.get("voiceId")}


class AudioProcessBehavior(VideoTransformBehavior):
    """Voice isolation (`method="elevenlabs"`) or noise reduction on a video's audio track."""

    node_type = NodeType.AUDIO_PROCESS
    service = "audio-isolate"

    def default_data(self) -> dict[str, Any]:
        return {**super().default_data(), "method": "elevenlabs", "noiseReduction": "medium"}

    def service_name(self, ctx: NodeContext, inputs: dict[str, Any]) -> str:
        if (ctx.data.get("method") or "elevenlabs") == "elevenlabs":
            return "audio-isolate"
        return "audio-denoise"

    def payload(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        if self.service_name(ctx, inputs) == "audio-isolate":
            return {"video": inputs["inputVideo"]}
        return {"video": inputs["inputVideo"], "noiseReduction": ctx.data.get("noiseReduction")}


class VideoUpscaleBehavior(VideoTransformBehavior):
    node_type = NodeType.VIDEO_UPSCALE
    service = "video-upscale"
    failure_message = "Upscale failed"

    def default_data(self) -> dict[str, Any]:
        return {
            **super().default_data(),
            "targetResolution": "1080p",
            "sharpen": False,
            "originalResolution": None,
            "newResolution": None,
        }

    def payload(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        return {
            "video": inputs["inputVideo"],
            "targetResolution": ctx.data.get("targetResolution"),
            "sharpen": ctx.data.get("sharpen", False),
        }

    def outputs(self, ctx: NodeContext, inputs: dict[str, Any], result: dict[str, Any]) -> dict[str, Any]:
        return {
            **super().outputs(ctx, inputs, result),
            "originalResolution": result.get("originalResolution"),
            "newResolution": result.get("newResolution"),
        }


class GreenScreenBehavior(VideoTransformBehavior):
    """Re-renders the subject on a solid green background."""

    node_type = NodeType.GREEN_SCREEN
    service = "green-screen"

    def default_data(self) -> dict[str, Any]:
        return {
            **super().default_data(),
            "prompt": "",
            "greenColor": "#00FF00",
            "resolution": "720p",
            "extractedFrame": None,
            "greenScreenImage": None,
            "lastFrame": None,
        }

    def payload(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        return {
            "video": inputs["inputVideo"],
            "prompt": ctx.data.get("prompt") or DEFAULT_GREEN_SCREEN_PROMPT,
            "resolution": ctx.data.get("resolution"),
            "greenColor": ctx.data.get("greenColor"),
        }

    def outputs(self, ctx: NodeContext, inputs: dict[str, Any], result: dict[str, Any]) -> dict[str, Any]:
        return {
            **super().outputs(ctx, inputs, result),
            "extractedFrame": result.get("extractedFrame"),
            "greenScreenImage": result.get("greenScreenImage"),
            "lastFrame": result.get("lastFrame"),
        }


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------


class ElevenLabsBehavior(NodeBehavior):
    """Text to speech."""

    node_type = NodeType.ELEVEN_LABS
    service = "elevenlabs"
    default_size = (300.0, 200.0)
    failure_message = "Voice failed"

    def default_data(self) -> dict[str, Any]:
        return {"inputText": None, "voiceId": DEFAULT_VOICE_ID, "outputAudio": None, **_status_fields()}

    def gather(self, ctx: NodeContext) -> dict[str, Any]:
        return {"inputText": ctx.effective(ctx.resolve().text, "inputText")}

    def validate(self, ctx: NodeContext, inputs: dict[str, Any]) -> list[str]:
        return [] if inputs["inputText"] else ["Missing script input"]

    def payload(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        return {"text": inputs["inputText"], "voiceId": ctx.data.get("voiceId")}

    def outputs(self, ctx: NodeContext, inputs: dict[str, Any], result: dict[str, Any]) -> dict[str, Any]:
        return {"outputAudio": result.get("audio")}


class PromptedAudioBehavior(NodeBehavior):
    """Audio from a prompt: the connected text wins over the node's own `prompt` field."""

    default_size = (300.0, 260.0)

    def default_data(self) -> dict[str, Any]:
        return {"prompt": "", "inputPrompt": None, "outputAudio": None, **_status_fields()}

    def gather(self, ctx: NodeContext) -> dict[str, Any]:
        connected = ctx.resolve().text
        return {"inputPrompt": connected or ctx.data.get("prompt") or None}

    def validate(self, ctx: NodeContext, inputs: dict[str, Any]) -> list[str]:
        return [] if inputs["inputPrompt"] else ["Missing prompt"]

    def outputs(self, ctx: NodeContext, inputs: dict[str, Any], result: dict[str, Any]) -> dict[str, Any]:
        return {"outputAudio": _require(result, "audio", self.service, self.failure_message)}


class MusicGenerateBehavior(PromptedAudioBehavior):
    node_type = NodeType.MUSIC_GENERATE
    service = "music-generate"
    failure_message = "Music generation failed"

    def default_data(self) -> dict[str, Any]:
        return {**super().default_data(), "duration": 30, "instrumental": True}

    def payload(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        return {
            "prompt": inputs["inputPrompt"],
            "duration": ctx.data.get("duration"),
            "instrumental": ctx.data.get("instrumental"),
        }


class SoundEffectsBehavior(PromptedAudioBehavior):
    node_type = NodeType.SOUND_EFFECTS
    service = "sound-effects"
    failure_message = "Sound effect generation failed"

    def default_data(self) -> dict[str, Any]:
        return {**super().default_data(), "duration": None}

    def payload(self, ctx: NodeContext, inputs: dict[str, Any]) -> dict[str, Any]:
        payload = {"text": inputs["inputPrompt"]}
        if ctx.data.get("duration"):
            payload["duration"] = ctx.data["duration"]
        return payload


GENERATION_BEHAVIORS: list[NodeBehavior] = [
    NanoBananaBehavior(),
    LLMGenerateBehavior(),
    VideoGenerateBehavior(),
    MotionCaptureBehavior(),
    VideoComposerBehavior(),
    CaptionBehavior(),
    VoiceSwapBehavior(),
    AudioProcessBehavior(),
    VideoUpscaleBehavior(),
    GreenScreenBehavior(),
    ElevenLabsBehavior(),
    MusicGenerateBehavior(),
    SoundEffectsBehavior(),
]
