"""
Thin wrapper over the OpenAI chat completions API.

Every failure mode (timeout, API error, empty or non-JSON content) is turned
into ModelError so callers have a single thing to fall back on.
"""
import json
import os

from openai import APITimeoutError, OpenAI, OpenAIError

from helpdesk_bot.constants import OPENAI_API_TIMEOUT_SECONDS, OPENAI_MODEL
from helpdesk_bot.errors import ConfigError, ModelError
from helpdesk_bot.logger import logger


class ChatModel:
    def __init__(
        self,
        client: OpenAI | None = None,
        model: str = OPENAI_MODEL,
        timeout: float = OPENAI_API_TIMEOUT_SECONDS,
    ):
        self.client = client
        self.model = model
        self.timeout = timeout

    @classmethod
    def from_env(cls, **kwargs) -> "ChatModel":
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ConfigError("OpenAI API key is not configured")
        return cls(client=OpenAI(api_key=api_key), **kwargs)

    def complete(
        self,
        messages: list[dict],
        max_tokens: int,
        temperature: float = 0.1,
        timeout: float | None = None,
        json_mode: bool = False,
    ) -> str:
        if self.client is None:
            raise ModelError("OpenAI client is not configured")

        timeout = timeout or self.timeout
        extra = {"response_format": {"type": "json_object"}} if json_mode else {}
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=timeout,
                **extra,
            )
        except APITimeoutError as e:
            logger.error("OpenAI API timeout (timeout=%ss)", timeout)
            raise ModelError(f"Model call timed out after {timeout}s") from e
        except OpenAIError as e:
            logger.error("OpenAI error: %s", e)
            raise ModelError(f"Model call failed: {e}") from e
        except Exception as e:  # noqa: BLE001 - want to catch all OpenAI client errors
            logger.exception("Unexpected error calling OpenAI")
            raise ModelError(f"Model call failed: {e}") from e

        choices = getattr(response, "choices", None) or []
        content = (choices[0].message.content or "").strip() if choices else ""
        if not content:
            raise ModelError("Model returned empty content")
        return content

    def complete_json(
        self,
        messages: list[dict],
        max_tokens: int,
        temperature: float = 0.1,
        timeout: float | None = None,
    ) -> dict:
        content = self.complete(
            messages,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=timeout,
            json_mode=True,
        )
        try:
            result = json.loads(content)
        except json.JSONDecodeError as e:
            raise ModelError(f"Model returned invalid JSON: {e}") from e
        if not isinstance(result, dict):
            raise ModelError("Model returned JSON that is not an object")
        return result
