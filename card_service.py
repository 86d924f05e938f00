"""Card data service: prompt Gemini for a collector card and parse the reply.

A reply that arrives but cannot be parsed degrades to a deterministic
fallback card. Only an unreachable or rejecting upstream is an error.
"""

import json
import logging
import os
import random
import re
from dataclasses import dataclass

import httpx
from dotenv import load_dotenv
from google import genai
from google.genai import errors, types

from card_prompt import (
    CARD_FEATURES,
    CARD_PROMPT,
    CARD_SCALE,
    CARD_SERIES,
    CARD_YEAR,
    CATEGORY_LABELS,
    ENHANCE_IMAGE_PROMPT,
    FALLBACK_DESCRIPTION,
    PACKAGING_IMAGE_PROMPT,
    PHRASING,
    PRIMARY_IMAGE_PROMPT,
)

load_dotenv()

logger = logging.getLogger(__name__)

AVAILABLE_MODELS = [
    "gemini-2.5-flash",
    "gemini-2.5-pro",
    "gemini-2.0-flash",
    "gemini-3-flash-preview",
]

DEFAULT_MODEL = AVAILABLE_MODELS[0]

THINKING_CONFIGS = {
    "gemini-2.5-flash": types.ThinkingConfig(thinking_budget=0),
    "gemini-3-flash-preview": types.ThinkingConfig(thinking_level="low"),
}

CATEGORIES = tuple(CATEGORY_LABELS)

IDENTIFIER_RE = re.compile(r"C-(0|[1-9][0-9]?)")
FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)
_DECODER = json.JSONDecoder()

GENERATION_FAILED_MESSAGE = "Failed to generate card. Please check your API key and try again."


class GenerationFailed(Exception):
    """The upstream API was unreachable or rejected the card request."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.message = message
        self.status = status


class InvalidCardRequest(ValueError):
    pass


@dataclass(frozen=True)
class CardRequest:
    name: str
    category: str

    def __post_init__(self):
        if not self.name or self.name != self.name.strip():
            raise InvalidCardRequest("Please enter a car name")
        if self.category not in CATEGORIES:
            raise InvalidCardRequest(f"Unknown category: {self.category}")

    @classmethod
    def create(cls, name, category="standard"):
        """Build a request from raw form input, trimming the name."""
        return cls(name=str(name or "").strip(), category=str(category or "standard").strip().lower())

    @property
    def is_premium(self):
        return self.category == "premium"


@dataclass(frozen=True)
class CardSpecs:
    scale: str
    material: str
    features: tuple
    collector_value: str

    def to_dict(self):
        return {
            "scale": self.scale,
            "material": self.material,
            "features": list(self.features),
            "collectorValue": self.collector_value,
        }


@dataclass(frozen=True)
class CardRecord:
    name: str
    category: str
    year: str
    series: str
    identifier: str
    description: str
    specs: CardSpecs
    primary_image_prompt: str
    packaging_image_prompt: str

    @property
    def label(self):
        return CATEGORY_LABELS[self.category]

    def to_dict(self):
        return {
            "name": self.name,
            "category": self.category,
            "label": self.label,
            "year": self.year,
            "series": self.series,
            "identifier": self.identifier,
            "description": self.description,
            "specs": self.specs.to_dict(),
            "primaryImagePrompt": self.primary_image_prompt,
            "packagingImagePrompt": self.packaging_image_prompt,
        }


def timeout_ms_from_env():
    raw = os.getenv("GEMINI_TIMEOUT_MS", "60000")
    try:
        timeout_ms = int(raw)
    except ValueError:
        raise RuntimeError(f"GEMINI_TIMEOUT_MS must be an integer number of milliseconds, got {raw!r}") from None
    if timeout_ms <= 0:
        raise RuntimeError(f"GEMINI_TIMEOUT_MS must be positive, got {raw!r}")
    return timeout_ms


TIMEOUT_MS = timeout_ms_from_env()


def make_client(api_key):
    return genai.Client(
        api_key=api_key,
        http_options=types.HttpOptions(timeout=TIMEOUT_MS),
    )


def build_config(model, temperature, max_output_tokens, top_k=None, top_p=None):
    kwargs = {"temperature": temperature, "max_output_tokens": max_output_tokens}
    if top_k is not None:
        kwargs["top_k"] = top_k
    if top_p is not None:
        kwargs["top_p"] = top_p
    if model in THINKING_CONFIGS:
        kwargs["thinking_config"] = THINKING_CONFIGS[model]
    return types.GenerateContentConfig(**kwargs)


def roll_identifier(rng=random):
    return f"C-{rng.randrange(100)}"


def _image_prompts(req):
    phrasing = PHRASING[req.category]
    return (
        PRIMARY_IMAGE_PROMPT.format(name=req.name, finish=phrasing["finish"]),
        PACKAGING_IMAGE_PROMPT.format(name=req.name, packaging=phrasing["packaging"]),
    )


def _pinned_specs(req, features):
    phrasing = PHRASING[req.category]
    return CardSpecs(
        scale=CARD_SCALE,
        material=phrasing["material"],
        features=tuple(features),
        collector_value=phrasing["collector_value"],
    )


def build_card_prompt(req, identifier):
    phrasing = PHRASING[req.category]
    primary, packaging = _image_prompts(req)
    return CARD_PROMPT.format(
        label=CATEGORY_LABELS[req.category],
        name=req.name,
        category=req.category,
        year=CARD_YEAR,
        series=CARD_SERIES,
        identifier=identifier,
        scale=CARD_SCALE,
        material=phrasing["material"],
        features=json.dumps(list(CARD_FEATURES)),
        collector_value=phrasing["collector_value"],
        primary_image_prompt=primary,
        packaging_image_prompt=packaging,
    )


def fallback_card(req, identifier):
    """Deterministic card for a request; only the identifier varies."""
    primary, packaging = _image_prompts(req)
    return CardRecord(
        name=req.name,
        category=req.category,
        year=CARD_YEAR,
        series=CARD_SERIES,
        identifier=identifier,
        description=FALLBACK_DESCRIPTION.format(
            name=req.name, edition=CATEGORY_LABELS[req.category].lower(),
        ),
        specs=_pinned_specs(req, CARD_FEATURES),
        primary_image_prompt=primary,
        packaging_image_prompt=packaging,
    )


def _embedded_objects(text):
    """Yield each JSON object starting at a `{` in text, left to right.

    A `{` that does not open a valid object is skipped, so stray braces in
    prose do not hide an object that follows them.
    """
    start = text.find("{")
    while start != -1:
        try:
            parsed, end = _DECODER.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(parsed, dict):
            yield parsed
        start = text.find("{", end)


def extract_json_object(text):
    """Return the first JSON object found in model text, or None."""
    cleaned = text.strip()
    m = FENCE_RE.match(cleaned)
    if m:
        cleaned = m.group(1)

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, dict):
        return parsed

    return next(_embedded_objects(cleaned), None)


def _text_field(data, key):
    value = data.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_card_text(text, req, identifier):
    """Build a card from model text, or None when the text has no usable card."""
    data = extract_json_object(text or "")
    if data is None:
        return None

    specs = data.get("specs")
    if not isinstance(specs, dict):
        return None
    features = specs.get("features")
    if not isinstance(features, list) or not features:
        return None
    if not all(isinstance(f, str) and f.strip() for f in features):
        return None

    description = _text_field(data, "description")
    primary = _text_field(data, "primaryImagePrompt")
    packaging = _text_field(data, "packagingImagePrompt")
    if not (description and primary and packaging):
        return None

    # The model's identifier is only kept when it still has the C-<0..99> shape.
    model_identifier = data.get("identifier")
    if isinstance(model_identifier, str) and IDENTIFIER_RE.fullmatch(model_identifier.strip()):
        identifier = model_identifier.strip()

    return CardRecord(
        name=req.name,
        category=req.category,
        year=CARD_YEAR,
        series=CARD_SERIES,
        identifier=identifier,
        description=description,
        specs=_pinned_specs(req, [f.strip() for f in features]),
        primary_image_prompt=primary,
        packaging_image_prompt=packaging,
    )


def response_text(response):
    """Text payload at candidates[0].content.parts[0].text, or None."""
    try:
        return response.candidates[0].content.parts[0].text
    except (AttributeError, IndexError, TypeError):
        return None


def request_card(req, api_key, model=DEFAULT_MODEL):
    """Generate a card for ``req``.

    Raises GenerationFailed when Gemini cannot be reached or answers with an
    error status. Any reply that arrives is turned into a card, falling back
    to the template card when it cannot be parsed.
    """
    if not api_key:
        raise GenerationFailed("API key is required to generate cards")

    identifier = roll_identifier()
    prompt = build_card_prompt(req, identifier)
    config = build_config(model, temperature=0.7, max_output_tokens=2048, top_k=40, top_p=0.95)

    logger.info("Requesting %s card for %r from %s", req.category, req.name, model)
    try:
        with make_client(api_key) as client:
            response = client.models.generate_content(
                model=model, contents=prompt, config=config,
            )
    except errors.APIError as e:
        logger.error("Gemini rejected card request: %s %s", e.code, e.message)
        raise GenerationFailed(f"API request failed: {e.code}", status=e.code) from e
    except httpx.HTTPError as e:
        logger.error("Gemini unreachable: %s", e)
        raise GenerationFailed(f"API request failed: {e}") from e

    card = parse_card_text(response_text(response), req, identifier)
    if card is None:
        logger.warning("Unparseable card reply for %r, using fallback card", req.name)
        return fallback_card(req, identifier)
    return card


def enhance_image_prompt(prompt, api_key, model=DEFAULT_MODEL):
    """Ask Gemini to elaborate an image prompt. Returns None on any failure."""
    config = build_config(model, temperature=0.8, max_output_tokens=500)
    try:
        with make_client(api_key) as client:
            response = client.models.generate_content(
                model=model,
                contents=ENHANCE_IMAGE_PROMPT.format(prompt=prompt),
                config=config,
            )
    except Exception as e:
        logger.warning("Image prompt enhancement failed: %s", e)
        return None

    text = response_text(response)
    if not text or not text.strip():
        logger.warning("Image prompt enhancement returned no text")
        return None
    return text.strip()


def generate_image(prompt, api_key, model=DEFAULT_MODEL):
    """Image slot for a card. No image backend exists, so this is always None."""
    enhanced = enhance_image_prompt(prompt, api_key, model=model)
    if enhanced:
        logger.debug("Enhanced image prompt (not rendered): %s", enhanced)
    return None
