"""Extract coverage amounts, deductibles and dates from declaration-page images."""

from __future__ import annotations

import base64
import logging
import re
from typing import Any, Literal

from pydantic import ValidationError

from ..config import Settings
from ..exceptions import CoverageExtractionError, LLMRequestError, LLMResponseError
from ..llm_json import extract_json_object, message_content
from ..openai_client import OpenAIChatClient
from .models import NOT_FOUND, PolicyDetails

PromptKind = Literal["coverages", "deductibles"]

_DATA_URL_PREFIX_RE = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")

COVERAGES_PROMPT = """Extract coverage amounts and dates from insurance policy declaration pages.
Return ONLY a JSON object with this structure:
{
  "coverageA": "$XXX,XXX",
  "coverageB": "$XX,XXX",
  "coverageC": "$XX,XXX",
  "coverageD": "$XX,XXX",
  "effectiveDate": "MM/DD/YYYY",
  "expirationDate": "MM/DD/YYYY",
  "location": "Full property address"
}"""

DEDUCTIBLES_PROMPT = """Look for these specific deductibles:
1. The "All Other Perils" (AOP) deductible
2. The "Wind/Hail" or "Named Storm" deductible (fixed amount or percentage)

Return ONLY a JSON object with this structure:
{
  "deductible": "$X,XXX",
  "windstormDeductible": "$X,XXX or X%"
}"""

_PROMPTS: dict[PromptKind, str] = {
    "coverages": COVERAGES_PROMPT,
    "deductibles": DEDUCTIBLES_PROMPT,
}


def to_image_data_url(image: bytes | str) -> str:
    """Return a JPEG data URL for raw bytes, base64 text, or an existing data URL."""
    if isinstance(image, bytes):
        encoded = base64.b64encode(image).decode("ascii")
    elif isinstance(image, str):
        encoded = _DATA_URL_PREFIX_RE.sub("", image.strip())
    else:
        raise CoverageExtractionError(f"Unsupported image input type {type(image).__name__}.")
    if not encoded:
        raise CoverageExtractionError("Image data is empty.")
    return f"data:image/jpeg;base64,{encoded}"


class PolicyAnalyzer:
    """Runs the coverage and deductible prompts against page images."""

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger | None = None,
        client: OpenAIChatClient | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger or logging.getLogger("policy_weather.policy.analyzer")
        self._client = client
        self._owns_client = client is None
        self.raw_responses: dict[str, dict[str, Any]] = {}

    async def __aenter__(self) -> PolicyAnalyzer:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def analyze(self, images: list[bytes | str]) -> PolicyDetails:
        """Extract coverages from page 1 and deductibles from page 2 (or page 1)."""
        if not images:
            raise CoverageExtractionError("No image data provided.")
        self.logger.info("Processing policy images, count=%d", len(images))

        first_page = to_image_data_url(images[0])
        deductible_page = to_image_data_url(images[1]) if len(images) > 1 else first_page

        coverage_data = await self._analyze_page(first_page, "coverages")
        deductible_data = await self._analyze_page(deductible_page, "deductibles")

        merged: dict[str, Any] = dict(coverage_data)
        merged["deductible"] = deductible_data.get("deductible") or NOT_FOUND
        merged["windstormDeductible"] = deductible_data.get("windstormDeductible") or NOT_FOUND
        try:
            details = PolicyDetails.model_validate(merged)
        except ValidationError as exc:
            raise CoverageExtractionError(f"Unexpected policy field values: {exc}") from exc
        self.logger.info(
            "Extracted policy details (location=%s effective=%s expiration=%s)",
            details.location or "-",
            details.effective_date or "-",
            details.expiration_date or "-",
        )
        return details

    async def _analyze_page(self, image_url: str, kind: PromptKind) -> dict[str, Any]:
        client = self._get_client()
        messages = [
            {"role": "system", "content": _PROMPTS[kind]},
            {
                "role": "user",
                "content": [{"type": "image_url", "image_url": {"url": image_url}}],
            },
        ]
        try:
            payload = await client.complete(
                messages,
                temperature=self.settings.openai_vision_temperature,
                max_tokens=self.settings.openai_vision_max_tokens,
                context=f"{kind} analysis",
            )
        except LLMRequestError as exc:
            raise CoverageExtractionError(f"Failed analyzing {kind}: {exc}") from exc
        self.raw_responses[kind] = payload

        try:
            return extract_json_object(message_content(payload))
        except LLMResponseError as exc:
            raise CoverageExtractionError(f"Unreadable {kind} response: {exc}") from exc

    def _get_client(self) -> OpenAIChatClient:
        if self._client is None:
            if not self.settings.openai_api_key:
                raise CoverageExtractionError("OPENAI_API_KEY is not configured.")
            self._client = OpenAIChatClient(self.settings, logger=self.logger)
        return self._client
