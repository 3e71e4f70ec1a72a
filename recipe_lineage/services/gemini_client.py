from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from google import genai
from google.genai import types
from google.genai.errors import APIError, ClientError

from recipe_lineage.services.errors import (
    GeminiConfigurationError,
    GeminiPromptError,
    GenerationServiceError,
    RateLimitedError,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "gemini-2.0-flash"


def _is_rate_limited_error(exc: Exception) -> bool:
    status_code = getattr(exc, "code", None) or getattr(exc, "status_code", None)
    if status_code == 429:
        return True
    return "RESOURCE_EXHAUSTED" in str(exc)


class GeminiClient:
    def __init__(
        self,
        api_key: str,
        model_name: str = DEFAULT_MODEL_NAME,
        client: Optional[genai.Client] = None,
    ) -> None:
        self.api_key = api_key
        self.model_name = model_name
        self._client = client or self._configure_api()

    def _configure_api(self) -> genai.Client:
        if not self.api_key:
            raise GeminiConfigurationError("Missing Google API key.")
        return genai.Client(api_key=self.api_key)

    def _load_system_prompt(self, file_path: Path) -> str:
        try:
            return file_path.read_text(encoding="utf-8")
        except FileNotFoundError as not_found_error:
            raise GeminiPromptError(f"Prompt file not found: {file_path}") from not_found_error
        except OSError as io_error:
            raise GeminiPromptError(f"Unable to read prompt file: {io_error}") from io_error

    def _serialize_prompt(self, user_prompt: str | list | dict[str, Any]) -> str:
        if isinstance(user_prompt, str):
            return user_prompt
        try:
            # 4-space indent matches the examples in the system prompt
            return json.dumps(user_prompt, indent=4, ensure_ascii=False)
        except TypeError:
            return str(user_prompt)

    def generate_json(
        self,
        user_prompt: str | list | dict[str, Any],
        system_prompt_path: Path,
        response_schema: types.Schema,
        temperature: Optional[float] = None,
    ) -> Optional[str]:
        """
        Ask the model for a JSON document matching `response_schema`.

        Returns:
            The raw JSON text, or None if the model produced no text
        """
        config = types.GenerateContentConfig(
            system_instruction=self._load_system_prompt(system_prompt_path),
            temperature=temperature,
            response_mime_type="application/json",
            response_schema=response_schema,
        )
        payload = self._serialize_prompt(user_prompt)

        try:
            response = self._client.models.generate_content(
                model=self.model_name,
                contents=payload,
                config=config,
            )
        except ClientError as err:
            if _is_rate_limited_error(err):
                raise RateLimitedError(
                    "Gemini API limit reached. Try again in a few moments."
                ) from err
            raise GenerationServiceError(str(err)) from err
        except APIError as err:
            raise GenerationServiceError(str(err)) from err

        text = response.text
        if not text:
            logger.warning("Gemini returned an empty response for model %s", self.model_name)
            return None
        return text
