"""Base agent and the Gemini client every agent shares."""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from google.genai import types
from pydantic import BaseModel, ValidationError as PydanticValidationError

from agents.common.validation import ValidationResult
from core.exceptions import CollaboratorError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_CODE_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_CODE_FENCE_END = re.compile(r"\s*```$")


class LLMError(CollaboratorError):
    """The model could not be reached or returned nothing."""

    error_code = "LLM_UNAVAILABLE"


class LLMResponseError(CollaboratorError):
    """The model answered, but not with the JSON we asked for."""

    error_code = "LLM_INVALID_RESPONSE"

    def __init__(self, message: str, raw_response: str = ""):
        super().__init__(message, details={"raw_excerpt": raw_response[:300]})
        self.raw_response = raw_response


class LLMClient:
    """
    Thin async wrapper around ``google.genai.Client``.

    One instance per process, created at startup and passed to the agents.
    Every call is bounded by ``timeout_seconds``.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.0-flash",
        timeout_seconds: float = 60.0,
        max_output_tokens: int = 8192,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_output_tokens = max_output_tokens
        self._client = None

    @classmethod
    def from_settings(cls, settings) -> "LLMClient":
        return cls(
            api_key=settings.google_api_key,
            model=settings.llm_model,
            timeout_seconds=settings.llm_timeout_seconds,
            max_output_tokens=settings.llm_max_output_tokens,
        )

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise LLMError("GOOGLE_API_KEY is not configured")
            from google import genai

            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        """Return the model's text for ``prompt``."""
        client = self._get_client()
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=0,
            top_p=1,
            max_output_tokens=max_output_tokens or self.max_output_tokens,
        )

        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=self.model,
                    contents=prompt,
                    config=config,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise LLMError(f"LLM call timed out after {self.timeout_seconds}s") from e
        except Exception as e:
            raise LLMError(f"LLM call failed: {type(e).__name__}: {e}") from e

        text = response.text
        if not text:
            raise LLMError("No content in LLM response")
        return text


def extract_json(raw_text: str) -> Any:
    """Parse JSON out of a model answer, tolerating a markdown code fence."""
    text = raw_text.strip()
    if text.startswith("```"):
        text = _CODE_FENCE_END.sub("", _CODE_FENCE_START.sub("", text))
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"LLM returned invalid JSON: {e.msg}", raw_text) from e


@dataclass
class StructuredResult(Generic[ModelT]):
    parsed: ModelT
    validation: ValidationResult
    raw_response: str
    attempts: int


class BaseAgent:
    """Base class for the LLM-backed agents."""

    def __init__(self, name: str, instructions: str, llm: LLMClient):
        """Initialize the agent.

        Args:
            name: Agent name, used in logs
            instructions: System instructions sent with every call
            llm: Shared client
        """
        self.name = name
        self.instructions = instructions
        self.llm = llm

    async def run(self, prompt: str, max_output_tokens: Optional[int] = None) -> str:
        return await self.llm.generate(
            prompt,
            system_instruction=self.instructions,
            max_output_tokens=max_output_tokens,
        )

    def parse(self, raw_text: str, model_cls: type[ModelT]) -> ModelT:
        data = extract_json(raw_text)
        try:
            return model_cls.model_validate(data)
        except PydanticValidationError as e:
            raise LLMResponseError(
                f"LLM JSON does not match {model_cls.__name__}: {e.error_count()} errors",
                raw_text,
            ) from e

    async def run_structured(
        self,
        prompt: str,
        model_cls: type[ModelT],
        validate: Callable[[ModelT], ValidationResult],
        max_output_tokens: Optional[int] = None,
    ) -> StructuredResult[ModelT]:
        """
        Call the model and parse its JSON into ``model_cls``.

        Retries once when the answer cannot be parsed, then once more when the
        parsed answer fails ``validate``; at most three calls in total. The
        last validation result is returned even when it is still invalid.

        Raises:
            LLMError: the model call itself failed
            LLMResponseError: no parseable answer after the retry
        """
        attempts = 1
        raw = await self.run(prompt, max_output_tokens)
        try:
            parsed = self.parse(raw, model_cls)
        except LLMResponseError as e:
            logger.warning(f"{self.name}: unparseable response, retrying ({e.message})")
            attempts += 1
            raw = await self.run(prompt, max_output_tokens)
            parsed = self.parse(raw, model_cls)

        validation = validate(parsed)
        if not validation.valid:
            logger.warning(
                f"{self.name}: response failed validation, retrying",
                extra={"errors": validation.errors},
            )
            attempts += 1
            raw = await self.run(prompt, max_output_tokens)
            parsed = self.parse(raw, model_cls)
            validation = validate(parsed)

        return StructuredResult(
            parsed=parsed, validation=validation, raw_response=raw, attempts=attempts
        )
