"""Category classification gateway.

Maps a short event description onto one label of a fixed category list.

## Contract

`classify(text, categories)` always returns an element of `categories`.
Any failure (network, HTTP status, unparseable or unknown answer) falls
back to `categories[0]`; it is logged, never raised. Labels are matched
case-insensitively and the canonical spelling from `categories` is returned.

Results are not guaranteed to be stable across calls: the LLM may answer
differently for borderline texts.

## OpenAI Chat Completions
- Endpoint: POST {base_url}chat/completions
- Auth: `Authorization: Bearer <api key>`
- Response path: choices[0].message.content, expected to be
  `{"category": "<label>"}`
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

import httpx

from km_bmv_sync.clients.base import ClientError
from km_bmv_sync.config import Settings

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """\
You are a classification assistant. You are given some text describing a musical event or rehearsal:
"{text}"

You have these possible categories:
{categories}

Instructions:
1. Determine the SINGLE best category from the list.
2. Output ONLY valid JSON with the key "category". Example:
{{"category": "<one of the categories above>"}}
3. Do not include extra text or keys beyond {{"category": "..."}}.
4. If the name contains "Probe" and nothing like "Register", "Registerprobe", \
"Registerprobe Hohes Blech" etc., pick "Gesamtorchester Vollprobe", it is the most common category.
5. If unsure, pick the closest category.
"""


def match_category(label: str | None, categories: Sequence[str]) -> str | None:
    """Find `label` in `categories`, ignoring case and surrounding whitespace.

    Returns the canonical entry from `categories`, or None.
    """
    if not label:
        return None
    wanted = label.strip().casefold()
    for category in categories:
        if category.casefold() == wanted:
            return category
    return None


class CategoryClassifier(ABC):
    """Abstract base class for category classifiers.

    Subclasses implement `_classify()`, which may raise or return anything;
    `classify()` enforces the fallback contract.
    """

    name: str

    async def __aenter__(self) -> CategoryClassifier:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Release resources held by the classifier."""

    async def classify(self, text: str, categories: Sequence[str]) -> str:
        """Pick the best matching category for `text`.

        Raises:
            ValueError: If `categories` is empty
        """
        if not categories:
            raise ValueError("categories must not be empty")

        try:
            label = await self._classify(text, categories)
        except Exception as e:
            logger.warning(
                f"{self.name} classification failed for {text!r}, "
                f"using {categories[0]!r}: {e}"
            )
            return categories[0]

        match = match_category(label, categories)
        if match is None:
            logger.warning(
                f"{self.name} returned unknown category {label!r} for {text!r}, "
                f"using {categories[0]!r}"
            )
            return categories[0]
        return match

    @abstractmethod
    async def _classify(self, text: str, categories: Sequence[str]) -> str | None:
        """Return the raw label chosen for `text`."""
        pass


class FirstCategoryClassifier(CategoryClassifier):
    """Deterministic classifier that always picks the first category.

    Used when no LLM is configured.
    """

    name = "first-category"

    async def _classify(self, text: str, categories: Sequence[str]) -> str | None:
        return categories[0]


class OpenAIClassifier(CategoryClassifier):
    """Classifier backed by an OpenAI-compatible chat completions API.

    At most `max_concurrency` requests are in flight at once.

    Example:
        ```python
        async with OpenAIClassifier(api_key="sk-...") as classifier:
            label = await classifier.classify("Frühschoppen", EVENT_CATEGORIES)
        ```
    """

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1/",
        timeout: float = 30.0,
        max_concurrency: int = 4,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> OpenAIClassifier:
        return cls(
            api_key=settings.openai_api_key or "",
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout=settings.classifier_timeout_seconds,
            max_concurrency=settings.classifier_max_concurrency,
            transport=transport,
        )

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                transport=self._transport,
            )
        return self._client

    def build_prompt(self, text: str, categories: Sequence[str]) -> str:
        return PROMPT_TEMPLATE.format(
            text=text,
            categories="\n".join(f"- {c}" for c in categories),
        )

    async def _classify(self, text: str, categories: Sequence[str]) -> str | None:
        body = {
            "model": self.model,
            "temperature": 0,
            "messages": [
                {"role": "system", "content": self.build_prompt(text, categories)},
            ],
        }

        async with self._semaphore:
            response = await self._get_client().post("chat/completions", json=body)

        if response.status_code != 200:
            raise ClientError(
                f"Chat completion failed: {response.status_code}",
                service=self.name,
                status_code=response.status_code,
                response_body=response.text,
            )

        raw = response.json()["choices"][0]["message"]["content"] or ""
        return self._parse_label(raw.strip())

    @staticmethod
    def _parse_label(raw: str) -> str | None:
        """Extract the label from `{"category": "..."}`, or None if malformed."""
        try:
            data = json.loads(raw)
        except ValueError:
            logger.debug(f"Could not parse structured JSON from classifier: {raw!r}")
            return None

        if isinstance(data, dict) and isinstance(data.get("category"), str):
            return data["category"].strip()
        return None


def build_classifier(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> CategoryClassifier:
    """Create the classifier configured in `settings`."""
    if settings.classifier_configured:
        return OpenAIClassifier.from_settings(settings, transport=transport)

    logger.warning("OPENAI_API_KEY not set, every activity gets the first category")
    return FirstCategoryClassifier()
