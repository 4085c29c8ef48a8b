"""
Dashboard page table.

Maps each navigation path to its title, HTML template name and, for pages
that generate something, the PageConfig its controller runs. Navigating to
a path initializes a fresh controller for it exactly once.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from fanaan.config import settings
from fanaan.models.request import GenerationRequest
from fanaan.models.response import GenerationResult
from fanaan.providers.base import EndpointKind
from fanaan.providers.registry import ProviderRegistry
from fanaan.services.blobs import BlobStore
from fanaan.services.credentials import GOOGLE_KEY, CredentialStore
from fanaan.services.page_controller import PageConfig, PageController
from fanaan.services.stream_decoder import ANTHROPIC_MESSAGES
from fanaan.services.webhook import WebhookNotifier
from fanaan.utils.exceptions import InvalidInput

logger = logging.getLogger(__name__)

HOME_PATH = "home"
NOT_FOUND_PATH = "not-found"

TEXT_TO_VIDEO = "text-to-video"
IMAGE_TO_VIDEO = "image-to-video"

HF_VIDEO_MODELS: Dict[str, List[Dict[str, str]]] = {
    TEXT_TO_VIDEO: [{"id": "cerspense/zeroscope-v2-576w", "name": "Zeroscope v2 576w"}],
    IMAGE_TO_VIDEO: [
        {"id": "stabilityai/stable-video-diffusion-img2vid-xt", "name": "Stable Video Diffusion"}
    ],
}

GROQ_TTS_VOICES: Dict[str, Dict[str, List[str]]] = {
    "playai-tts": {
        "male": ["Basil-PlayAI", "Briggs-PlayAI", "Calum-PlayAI", "Chip-PlayAI", "Cillian-PlayAI",
                 "Fritz-PlayAI", "Mason-PlayAI", "Mikail-PlayAI", "Mitch-PlayAI", "Thunder-PlayAI"],
        "female": ["Arista-PlayAI", "Atlas-PlayAI", "Celeste-PlayAI", "Cheyenne-PlayAI", "Deedee-PlayAI",
                   "Gail-PlayAI", "Indigo-PlayAI", "Mamaw-PlayAI", "Quinn-PlayAI"],
    },
    "playai-tts-arabic": {
        "male": ["Ahmad-PlayAI", "Khalid-PlayAI", "Nasser-PlayAI"],
        "female": ["Amira-PlayAI"],
    },
}


# ============================================================================
# Payload builders
# ============================================================================


def chat_payload(model: str, prompt: str) -> dict:
    """OpenAI-compatible chat completion body."""
    return {"model": model, "messages": [{"role": "user", "content": prompt}]}


def claude_payload(model: str, prompt: str) -> dict:
    """Anthropic messages body; max_tokens is mandatory there."""
    return {
        "model": model,
        "max_tokens": settings.anthropic_max_tokens,
        "messages": [{"role": "user", "content": prompt}],
    }


def hf_inputs_payload(model: str, prompt: str) -> dict:
    return {"inputs": prompt}


def hf_video_payload(model: str, prompt: str, mode: Optional[str] = None, image: Any = None):
    """Prompt JSON for text-to-video, the raw image bytes for image-to-video."""
    if (mode or TEXT_TO_VIDEO) == IMAGE_TO_VIDEO:
        # Uploads arrive decoded; a plain form field named "image" is not a file
        if not image or not isinstance(image, (bytes, bytearray)):
            raise InvalidInput("Please select an image file.")
        return bytes(image)
    if not prompt.strip():
        raise InvalidInput("Prompt cannot be empty.")
    return {"inputs": prompt}


def groq_speech_payload(model: str, prompt: str, voice: Optional[str] = None) -> dict:
    if not voice:
        raise InvalidInput("Voice cannot be empty.")
    return {"model": model, "input": prompt, "voice": voice}


def imagen_payload(model: str, prompt: str) -> dict:
    return {"instances": [{"prompt": prompt}], "parameters": {"sampleCount": 1}}


def veo_payload(
    model: str,
    prompt: str,
    length: Optional[str] = None,
    resolution: Optional[str] = None,
    aspect_ratio: Optional[str] = None,
) -> dict:
    """Veo job body; the requested length is folded into the prompt text."""
    if length:
        prompt = f"A {length} second video of {prompt}"
    parameters: Dict[str, Any] = {}
    if resolution:
        parameters["resolution"] = resolution
    if aspect_ratio:
        parameters["aspectRatio"] = aspect_ratio
    return {"instances": [{"prompt": prompt}], "parameters": parameters}


# ============================================================================
# Webhook summaries that differ from the default
# ============================================================================


def media_summary(request: GenerationRequest, result: GenerationResult) -> dict:
    return {"success": True, "model": request.model, "prompt": request.prompt, "imageUrl": result.media_url}


def hf_video_summary(request: GenerationRequest, result: GenerationResult) -> dict:
    return {
        "success": True,
        "mode": request.options.get("mode") or TEXT_TO_VIDEO,
        "model": request.model,
        "prompt": request.prompt,
        "videoUrl": result.media_url,
    }


def speech_summary(request: GenerationRequest, result: GenerationResult) -> dict:
    return {
        "success": True,
        "model": request.model,
        "voice": request.options.get("voice"),
        "text": request.prompt,
        "audioUrl": result.media_url,
    }


def veo_summary(request: GenerationRequest, result: GenerationResult) -> dict:
    # videoUrl is a transient blob URL on this server
    return {"success": True, "model": request.model, "prompt": request.prompt, "videoUrl": result.media_url}


# ============================================================================
# Page configurations
# ============================================================================


def text_page(prefix: str, credential_name: str, endpoint: str, **overrides) -> PageConfig:
    """Config for the streaming text pages, which share their DOM id scheme."""
    options: Dict[str, Any] = dict(
        form_id=f"{prefix}-form",
        output_id=f"{prefix}-response",
        submit_id=f"{prefix}-generate-button",
        endpoint=endpoint,
        credential_name=credential_name,
        build_payload=chat_payload,
        notify_toggle_id=f"{prefix}-webhook-toggle",
    )
    options.update(overrides)
    return PageConfig(**options)


def build_page_configs() -> Dict[str, PageConfig]:
    """PageConfig per path, with endpoints taken from settings."""
    return {
        "groq-text": text_page(
            "groq-text", "groqKey", f"{settings.groq_base_url}/chat/completions"
        ),
        "chatgpt-text": text_page(
            "chatgpt-text", "openAIKey", f"{settings.openai_base_url}/chat/completions"
        ),
        "deepseek-text": text_page(
            "deepseek-text", "deepSeekKey", f"{settings.deepseek_base_url}/chat/completions"
        ),
        "openrouter": text_page(
            "openrouter", "openRouterKey", f"{settings.openrouter_base_url}/chat/completions",
            extra_headers={"HTTP-Referer": "https://fanaan.ai", "X-Title": "Fanaan AI"},
        ),
        "claude-text": text_page(
            "claude-text", "anthropicKey", f"{settings.anthropic_base_url}/messages",
            build_payload=claude_payload,
            extractor=ANTHROPIC_MESSAGES,
            auth_header="x-api-key",
            auth_prefix="",
            extra_headers={"anthropic-version": settings.anthropic_version},
        ),
        "huggingface-images": PageConfig(
            form_id="hf-image-form",
            output_id="hf-image-status",
            submit_id="hf-image-generate-button",
            endpoint=f"{settings.huggingface_base_url}/{{model}}",
            credential_name="huggingFaceKey",
            build_payload=hf_inputs_payload,
            kind=EndpointKind.BINARY,
            notify_toggle_id="hf-image-webhook-toggle",
            webhook_source="hf-images",
            webhook_summary=media_summary,
        ),
        "huggingface-video": PageConfig(
            form_id="hf-video-form",
            output_id="hf-video-status",
            submit_id="hf-video-generate-button",
            endpoint=f"{settings.huggingface_base_url}/{{model}}",
            credential_name="huggingFaceKey",
            build_payload=hf_video_payload,
            kind=EndpointKind.BINARY,
            notify_toggle_id="hf-video-webhook-toggle",
            webhook_source="hf-video",
            required_fields=("model",),
            extra_fields=("mode", "image"),
            download_name="fanaan-ai-hf-video-{timestamp}.mp4",
            webhook_summary=hf_video_summary,
        ),
        "groq-tts": PageConfig(
            form_id="groq-tts-form",
            output_id="groq-tts-status",
            submit_id="groq-tts-generate-button",
            endpoint=f"{settings.groq_base_url}/audio/speech",
            credential_name="groqKey",
            build_payload=groq_speech_payload,
            kind=EndpointKind.BINARY,
            notify_toggle_id="groq-tts-webhook-toggle",
            webhook_source="groq-tts",
            prompt_field="text",
            extra_fields=("voice",),
            download_name="fanaan-ai-speech-{timestamp}.wav",
            webhook_summary=speech_summary,
        ),
        "gemini-images": PageConfig(
            form_id="gemini-image-form",
            output_id="gemini-image-status",
            submit_id="gemini-image-generate-button",
            endpoint=f"{settings.google_base_url}/models/{{model}}:predict",
            credential_name=GOOGLE_KEY,
            build_payload=imagen_payload,
            kind=EndpointKind.IMAGE,
            notify_toggle_id="gemini-image-webhook-toggle",
            webhook_source="gemini-images",
            auth_header="x-goog-api-key",
            auth_prefix="",
            webhook_summary=media_summary,
            requires_key_selection=True,
        ),
        "veo": PageConfig(
            form_id="veo-form",
            output_id="veo-status",
            submit_id="veo-generate-button",
            endpoint=f"{settings.google_base_url}/models/{{model}}:predictLongRunning",
            credential_name=GOOGLE_KEY,
            build_payload=veo_payload,
            kind=EndpointKind.VIDEO,
            notify_toggle_id="veo-webhook-toggle",
            webhook_source="veo",
            auth_header="x-goog-api-key",
            auth_prefix="",
            extra_fields=("length", "resolution", "aspect_ratio"),
            download_name="fanaan-ai-veo-{timestamp}.mp4",
            webhook_summary=veo_summary,
            requires_key_selection=True,
            loading_message="Generating... this may take a few minutes.",
        ),
    }


# ============================================================================
# Router
# ============================================================================


@dataclass
class PageContext:
    """Collaborators every page controller is built with."""

    credentials: CredentialStore
    registry: ProviderRegistry
    notifier: WebhookNotifier
    blobs: BlobStore


@dataclass(frozen=True)
class Route:
    path: str
    title: str
    template: str
    init: Optional[Callable[[PageContext], PageController]] = None
    catalog: Optional[Dict[str, Any]] = None


def _controller_init(config: PageConfig) -> Callable[[PageContext], PageController]:
    def init(context: PageContext) -> PageController:
        return PageController(
            config,
            credentials=context.credentials,
            registry=context.registry,
            notifier=context.notifier,
            blobs=context.blobs,
        )

    return init


def build_routes(configs: Optional[Dict[str, PageConfig]] = None) -> Dict[str, Route]:
    configs = configs if configs is not None else build_page_configs()
    titles = {
        "veo": "Generate Video (Veo)",
        "gemini-images": "Generate Images (Gemini)",
        "huggingface-video": "Generate Video (Hugging Face)",
        "huggingface-images": "Generate Images (Hugging Face)",
        "groq-text": "Generate Text (Groq)",
        "groq-tts": "Generate Speech (Groq)",
        "claude-text": "Generate Text (Claude)",
        "chatgpt-text": "Generate Text (ChatGPT)",
        "deepseek-text": "Generate Text (DeepSeek)",
        "openrouter": "Generate Text (OpenRouter)",
    }
    catalogs = {
        "huggingface-video": {"models": HF_VIDEO_MODELS},
        "groq-tts": {"voices": GROQ_TTS_VOICES},
    }

    routes = {HOME_PATH: Route(HOME_PATH, "Home", "home.html")}
    for path, title in titles.items():
        config = configs.get(path)
        routes[path] = Route(
            path,
            title,
            f"{path}.html",
            init=_controller_init(config) if config else None,
            catalog=catalogs.get(path),
        )
    routes["api-keys"] = Route("api-keys", "API Keys", "api-keys.html")
    return routes


NOT_FOUND_ROUTE = Route(NOT_FOUND_PATH, "Not Found", "not-found.html")


class PageRouter:
    """Resolves paths to routes and keeps the controller of the last navigation."""

    def __init__(self, context: PageContext, routes: Optional[Dict[str, Route]] = None):
        self.context = context
        self.routes = routes if routes is not None else build_routes()
        self._controllers: Dict[str, PageController] = {}

    def resolve(self, path: Optional[str]) -> Route:
        return self.routes.get(path or HOME_PATH, NOT_FOUND_ROUTE)

    def navigate(self, path: Optional[str]) -> Route:
        """Resolve a path and run its init once for this navigation."""
        route = self.resolve(path)
        if route.init is not None:
            previous = self._controllers.get(route.path)
            if previous is not None and previous.in_flight:
                # Keep the running controller so its submit control stays locked
                logger.info(f"Navigation to {route.path} kept the in-flight controller")
            else:
                self._controllers[route.path] = route.init(self.context)
        return route

    def controller(self, path: str) -> Optional[PageController]:
        """Controller for a generation page, initializing it on first use."""
        route = self.resolve(path)
        if route.init is None:
            return None
        if route.path not in self._controllers:
            self.navigate(route.path)
        return self._controllers[route.path]

    def navigation(self) -> List[Dict[str, str]]:
        return [{"path": r.path, "title": r.title} for r in self.routes.values()]


def decode_image(data: str) -> bytes:
    """Decode a base64 upload from the browser."""
    try:
        return base64.b64decode(data, validate=True)
    except ValueError as e:
        raise InvalidInput(f"Image could not be decoded: {e}") from e


def _build_default_router() -> PageRouter:
    from fanaan.providers.registry import provider_registry
    from fanaan.services.blobs import blob_store
    from fanaan.services.credentials import credential_store
    from fanaan.services.webhook import webhook_notifier

    return PageRouter(
        PageContext(
            credentials=credential_store,
            registry=provider_registry,
            notifier=webhook_notifier,
            blobs=blob_store,
        )
    )


# Singleton instance
page_router = _build_default_router()
