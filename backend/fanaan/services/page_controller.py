"""
Generic page controller: one form bound to one request/response cycle.

Every dashboard page that calls a provider is a PageConfig handed to this
controller. A submission moves through

    Idle -> Validating -> (failure: Idle) | InFlight -> Idle

with the submit control disabled from the moment the submission starts
until it settles, whatever the outcome.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from fanaan.models.request import GenerationRequest
from fanaan.models.response import GenerationResult
from fanaan.providers.base import EndpointKind
from fanaan.providers.registry import ProviderRegistry
from fanaan.services.blobs import BlobStore
from fanaan.services.credentials import CredentialStore
from fanaan.services.panel import Panel, PanelListener
from fanaan.services.session import KeySelection
from fanaan.services.stream_decoder import DeltaExtractor
from fanaan.services.webhook import WebhookNotifier
from fanaan.utils.exceptions import (
    GenerationError,
    InvalidInput,
    KeySelectionRequired,
    MissingCredential,
    StreamError,
)
from fanaan.utils.time import epoch_millis

logger = logging.getLogger(__name__)

PayloadBuilder = Callable[..., Any]
WebhookSummary = Callable[[GenerationRequest, GenerationResult], Dict[str, Any]]

# Google reports a bad or revoked key this way
INVALID_KEY_MARKER = "Requested entity was not found"
INVALID_KEY_MESSAGE = "Invalid API Key. Please select a valid key."
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred."


def default_webhook_summary(request: GenerationRequest, result: GenerationResult) -> Dict[str, Any]:
    summary: Dict[str, Any] = {
        "success": True,
        "model": request.model,
        "prompt": request.prompt,
    }
    if result.media_url:
        summary["mediaUrl"] = result.media_url
    else:
        summary["response"] = result.text
    return summary


@dataclass(frozen=True)
class PageConfig:
    """Everything that distinguishes one generation page from another.

    ``endpoint`` may contain ``{model}``. ``build_payload`` is called as
    ``build_payload(model, prompt, **extras)`` where extras are the
    ``extra_fields`` read from the form, and may raise InvalidInput.
    """

    form_id: str
    output_id: str
    submit_id: str
    endpoint: str
    credential_name: str
    build_payload: PayloadBuilder
    kind: EndpointKind = EndpointKind.STREAM
    extra_headers: Mapping[str, str] = field(default_factory=dict)
    notify_toggle_id: Optional[str] = None
    extractor: Optional[DeltaExtractor] = None  # streaming only, OpenAI format if unset
    auth_header: str = "Authorization"
    auth_prefix: str = "Bearer "
    prompt_field: str = "prompt"
    required_fields: Optional[Tuple[str, ...]] = None  # defaults to (prompt_field,)
    extra_fields: Tuple[str, ...] = ()
    download_name: Optional[str] = None  # may contain {timestamp}
    webhook_summary: WebhookSummary = default_webhook_summary
    webhook_source: Optional[str] = None  # defaults to form_id
    requires_key_selection: bool = False
    loading_message: str = "Generating..."

    @property
    def required(self) -> Tuple[str, ...]:
        if self.required_fields is None:
            return (self.prompt_field,)
        return self.required_fields


def _field_label(name: str) -> str:
    return name.replace("_", " ").capitalize()


class PageController:
    """Runs submissions of one form against one provider endpoint."""

    def __init__(
        self,
        config: PageConfig,
        credentials: CredentialStore,
        registry: ProviderRegistry,
        notifier: WebhookNotifier,
        blobs: BlobStore,
    ):
        self.config = config
        self.credentials = credentials
        self.registry = registry
        self.notifier = notifier
        self.blobs = blobs
        self.panel = Panel(config.output_id, config.submit_id)
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def reserve(self) -> bool:
        """Claim the form for one submission. False if one is already in flight."""
        if self._in_flight:
            return False
        self._in_flight = True
        return True

    async def submit(
        self,
        form: Mapping[str, Any],
        listener: Optional[PanelListener] = None,
        key_selection: Optional[KeySelection] = None,
        reserved: bool = False,
    ) -> GenerationResult:
        """
        Validate the form, call the provider and render the outcome.

        Args:
            form: Field values by name; toggles are booleans, uploads bytes
            listener: Receives every panel change made by this submission
            key_selection: Session state for pages that need a selected key
            reserved: The caller already holds the form through reserve()

        Returns:
            The GenerationResult that was rendered
        """
        if not reserved and not self.reserve():
            logger.info(f"{self.config.form_id}: submission ignored, one is already in flight")
            return GenerationResult.failure("A generation is already in progress.")

        if listener:
            self.panel.attach(listener)
        try:
            async with self._submission():
                try:
                    request = await self._build_request(form, key_selection)
                except GenerationError as e:
                    logger.info(f"{self.config.form_id}: rejected before sending: {e.message}")
                    self.panel.show_error(e.message)
                    return GenerationResult.failure(e.message)

                self.panel.show_loading(self.config.loading_message)
                result = await self._perform(request, key_selection)

            if result.ok and request.notify:
                source = self.config.webhook_source or self.config.form_id
                self.notifier.notify(source, self.config.webhook_summary(request, result))
            return result
        finally:
            self._in_flight = False
            if listener:
                self.panel.detach(listener)

    @asynccontextmanager
    async def _submission(self):
        """Disable the submit control for the duration of one submission."""
        self.panel.set_submit_enabled(False)
        try:
            yield
        finally:
            self.panel.set_submit_enabled(True)

    async def _build_request(
        self, form: Mapping[str, Any], key_selection: Optional[KeySelection]
    ) -> GenerationRequest:
        config = self.config

        if config.requires_key_selection:
            if key_selection is None or not await key_selection.has_selected_key():
                raise KeySelectionRequired()

        credential = await self.credentials.get_credential(config.credential_name)
        if not credential:
            raise MissingCredential(config.credential_name)

        for name in config.required:
            value = form.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise InvalidInput(f"{_field_label(name)} cannot be empty.")

        model = str(form.get("model") or "")
        prompt = str(form.get(config.prompt_field) or "")
        extras = {name: form.get(name) for name in config.extra_fields}
        payload = config.build_payload(model, prompt, **extras)

        headers = {config.auth_header: f"{config.auth_prefix}{credential}", **config.extra_headers}
        notify = bool(config.notify_toggle_id and form.get(config.notify_toggle_id))

        return GenerationRequest(
            endpoint=config.endpoint.replace("{model}", model),
            credential=credential,
            payload=payload,
            model=model,
            prompt=prompt,
            options=extras,
            headers=headers,
            notify=notify,
        )

    async def _perform(
        self, request: GenerationRequest, key_selection: Optional[KeySelection]
    ) -> GenerationResult:
        provider = self.registry.get_provider(self.config.kind, self.config.extractor)
        self.registry.call_started()
        try:
            result = await provider.generate(request, on_delta=self.panel.show_text)
        except StreamError as e:
            self.panel.show_error(e.message, partial_text=e.partial_text)
            return GenerationResult.failure(e.message, partial_text=e.partial_text)
        except GenerationError as e:
            message = e.message
            if key_selection is not None and INVALID_KEY_MARKER in message:
                key_selection.reset()
                message = INVALID_KEY_MESSAGE
            self.panel.show_error(message)
            return GenerationResult.failure(message)
        except Exception as e:
            logger.error(f"{self.config.form_id}: generation failed: {e}", exc_info=True)
            self.panel.show_error(UNKNOWN_ERROR_MESSAGE)
            return GenerationResult.failure(UNKNOWN_ERROR_MESSAGE)
        finally:
            self.registry.call_ended()

        if result.media is not None:
            url = self.blobs.put(result.media)
            download_name = None
            if self.config.download_name:
                download_name = self.config.download_name.replace("{timestamp}", str(epoch_millis()))
            self.panel.show_media(url, result.media.media_type, download_name)
            return GenerationResult.success(media=result.media, media_url=url)

        # Clean final render of the complete text
        self.panel.show_text(result.text)
        return result
