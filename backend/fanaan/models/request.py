from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class GenerationRequest:
    """One user-initiated provider call, built from a validated form submission."""

    endpoint: str
    credential: str
    payload: Any  # JSON-serializable dict, or raw bytes for file uploads
    model: str = ""
    prompt: str = ""
    options: Dict[str, Any] = field(default_factory=dict)  # extra form fields (voice, mode, ...)
    headers: Dict[str, str] = field(default_factory=dict)
    notify: bool = False


class ImageSource(BaseModel):
    """Image source with base64 data"""
    type: Literal["base64"] = "base64"
    media_type: str  # e.g., "image/jpeg", "image/png"
    data: str  # Base64-encoded image data (without data URL prefix)


class SubmitRequest(BaseModel):
    """Form contents posted by a dashboard page"""
    fields: Dict[str, str] = Field(default_factory=dict)
    toggles: Dict[str, bool] = Field(default_factory=dict)
    image: Optional[ImageSource] = None

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "fields": {"model": "llama3-8b-8192", "prompt": "Write a haiku"},
                    "toggles": {"groq-text-webhook-toggle": True},
                },
                {
                    "fields": {"model": "stabilityai/stable-video-diffusion-img2vid-xt", "mode": "image-to-video"},
                    "image": {
                        "type": "base64",
                        "media_type": "image/png",
                        "data": "iVBORw0KGgoAAAANSUhEUgAA..."
                    },
                },
            ]
        }
    )


class CredentialsUpdate(BaseModel):
    """Values keyed by credential name; an empty value removes the entry"""
    values: Dict[str, str]


class KeySelectRequest(BaseModel):
    """Key chosen for Google pages in this session"""
    api_key: Optional[str] = Field(default=None, description="Stored as googleApiKey when given")
