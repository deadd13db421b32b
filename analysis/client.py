# =============================================================================
# MCP-VL Image Analysis - Model Service Client
# =============================================================================
# Provides ModelServiceClient, a thin requests-based client for an
# OpenAI-compatible ``/chat/completions`` endpoint (Zhipu GLM-4.5V by
# default), and VisionClient, which turns a canonical image plus a focus area
# into one multimodal user message and returns the model's raw text.
# =============================================================================

import logging
import time
from typing import Any, Dict, List, Optional, Tuple, Union

import requests

from analysis.prompts import prompt_for
from config import Config
from imaging.normalizer import CanonicalImage
from shared.errors import RemoteServiceError
from shared.schemas import FocusArea

logger = logging.getLogger(__name__)

# Statuses worth another attempt; other 4xx are the caller's fault
_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _upstream_message(response) -> Tuple[str, Optional[dict]]:
    """Extract ``error.message`` from an error body, falling back to the text."""
    try:
        data = response.json()
    except ValueError:
        return (response.text or "").strip()[:500], None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"]), data
        if isinstance(error, str):
            return error, data
        if data.get("message"):
            return str(data["message"]), data
    return str(data)[:500], data if isinstance(data, dict) else None


class ModelServiceClient:
    """
    HTTP client for the remote chat-completions service.

    Args:
        config:          Immutable configuration (key, base URL, model,
                         sampling defaults, timeout, retries).
        session:         requests.Session (or compatible); one is created
                         when omitted.
        retry_backoff:   Base seconds for exponential backoff between
                         retries (``backoff * 2 ** (attempt - 1)``).
    """

    def __init__(
        self,
        config: Config,
        session: Optional[requests.Session] = None,
        retry_backoff: float = 1.0,
    ):
        self._config = config
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})
        self._retry_backoff = retry_backoff

    @property
    def model(self) -> str:
        return self._config.model

    def ensure_configured(self) -> None:
        """Raise ConfigurationError unless a real API key is configured."""
        self._config.require_api_key()

    def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> dict:
        """
        Send a chat-completions request.

        Retries connection errors, timeouts, 429 and 5xx with exponential
        backoff up to ``model_max_retries`` attempts in total.

        Args:
            messages:    Chat messages in the OpenAI multimodal shape.
            temperature: Overrides the configured default.
            max_tokens:  Overrides the configured default.

        Returns:
            dict: The parsed JSON response body.

        Raises:
            ConfigurationError: No usable API key; nothing is sent.
            RemoteServiceError: Non-2xx response, invalid JSON, or transport
                                failure after all attempts.
        """
        self.ensure_configured()

        payload = {
            "model": self._config.model,
            "messages": messages,
            "temperature": self._config.temperature if temperature is None else temperature,
            "max_tokens": self._config.max_tokens if max_tokens is None else max_tokens,
        }
        headers = {"Authorization": f"Bearer {self._config.api_key}"}
        url = self._config.chat_completions_url
        max_attempts = max(1, self._config.model_max_retries)

        logger.info(
            "Sending request to model service (model=%s, messages=%d)",
            payload["model"],
            len(messages),
        )

        last_error: Optional[RemoteServiceError] = None
        for attempt in range(1, max_attempts + 1):
            try:
                response = self._session.post(
                    url,
                    json=payload,
                    headers=headers,
                    timeout=self._config.model_timeout_seconds,
                )
            except requests.exceptions.RequestException as exc:
                last_error = RemoteServiceError(f"Model service request failed: {exc}")
            else:
                if 200 <= response.status_code < 300:
                    return self._parse_success(response)

                message, data = _upstream_message(response)
                last_error = RemoteServiceError(
                    f"Model service error (HTTP {response.status_code}): {message}",
                    status_code=response.status_code,
                    response_data=data,
                )
                if response.status_code not in _RETRYABLE_STATUS:
                    break

            if attempt < max_attempts:
                wait_time = self._retry_backoff * 2 ** (attempt - 1)
                logger.warning(
                    "Model request failed (attempt %d/%d): %s - retrying in %.1fs",
                    attempt, max_attempts, last_error, wait_time,
                )
                time.sleep(wait_time)

        logger.error(
            "Model service request failed (status=%s): %s",
            last_error.status_code, last_error,
        )
        raise last_error

    @staticmethod
    def _parse_success(response) -> dict:
        try:
            data = response.json()
        except ValueError as exc:
            raise RemoteServiceError(
                "Model service returned a non-JSON body",
                status_code=response.status_code,
            ) from exc
        if not isinstance(data, dict):
            raise RemoteServiceError(
                "Model service returned an unexpected body",
                status_code=response.status_code,
            )
        if data.get("error"):
            message, _ = _upstream_message(response)
            raise RemoteServiceError(
                f"Model service error: {message}",
                status_code=response.status_code,
                response_data=data,
            )
        logger.info(
            "Model service responded (id=%s, usage=%s)",
            data.get("id"),
            data.get("usage"),
        )
        return data


def build_image_message(image: CanonicalImage, instruction: str) -> Dict[str, Any]:
    """One user-role message: the instruction text, then the image data URI."""
    return {
        "role": "user",
        "content": [
            {"type": "text", "text": instruction},
            {"type": "image_url", "image_url": {"url": image.to_data_uri()}},
        ],
    }


def extract_content(response: dict) -> str:
    """Return ``choices[0].message.content`` or "" when absent."""
    choices = response.get("choices") or []
    if not choices:
        return ""
    message = choices[0].get("message") or {}
    content = message.get("content")
    if content is None:
        return ""
    if isinstance(content, list):
        # Some gateways return content parts even for text replies
        return "".join(
            part.get("text", "") for part in content if isinstance(part, dict)
        )
    return str(content)


class VisionClient:
    """
    Sends a canonical image with a focus-area instruction to the model.

    Args:
        service: ModelServiceClient doing the actual HTTP exchange.
    """

    def __init__(self, service: ModelServiceClient):
        self._service = service

    @property
    def service(self) -> ModelServiceClient:
        return self._service

    def ensure_configured(self) -> None:
        """Raise ConfigurationError unless a real API key is configured."""
        self._service.ensure_configured()

    def analyze(self, image: CanonicalImage, focus_area: Union[FocusArea, str] = FocusArea.CODE) -> str:
        """
        Ask the model to describe ``image`` through the given lens.

        Args:
            image:      Canonical JPEG payload.
            focus_area: code, architecture, error or documentation.

        Returns:
            str: The model's reply text, unmodified.

        Raises:
            ValueError:         Unknown focus area.
            ConfigurationError: No usable API key.
            RemoteServiceError: The model call failed.
        """
        instruction = prompt_for(focus_area)
        message = build_image_message(image, instruction)
        payload_kb = len(message["content"][1]["image_url"]["url"]) // 1024
        logger.info(
            "Analyzing image (focus=%s, %dx%d, %d KB payload)",
            FocusArea(focus_area).value,
            image.encoded_width,
            image.encoded_height,
            payload_kb,
        )
        response = self._service.chat_completion([message])
        return extract_content(response)
