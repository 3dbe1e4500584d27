"""Replicate API client for product image editing with error classification."""

import asyncio
import base64
from typing import Any, Protocol

import httpx
import replicate
import structlog
from replicate.exceptions import ReplicateError as ReplicateAPIError

from commercepix.services.exceptions import (
    ContentPolicyError,
    PermanentError,
    TransientError,
    UpstreamError,
)

logger = structlog.get_logger(__name__)


class ImageEditClient(Protocol):
    """Anything that can turn (input image, prompt) into output image bytes."""

    async def edit(self, image: bytes, prompt: str, mime_type: str) -> bytes: ...


def classify_error(exception: Exception) -> UpstreamError:
    """Classify exception into an upstream error category.

    Args:
        exception: Original exception from Replicate SDK or network layer

    Returns:
        Classified UpstreamError subclass instance

    Classification rules:
        - Timeout errors -> TransientError
        - 429 (rate limit, quota) -> TransientError
        - 5xx / service unavailable -> TransientError
        - 401/403 (authentication) -> PermanentError
        - Content policy violations -> ContentPolicyError
        - Connection errors -> TransientError
        - Other errors -> PermanentError
    """
    error_message = str(exception)
    error_message_lower = error_message.lower()
    provider_status = getattr(exception, "status", None)

    if isinstance(exception, (TimeoutError, httpx.TimeoutException)) or "timeout" in error_message_lower:
        return TransientError(f"Network timeout: {error_message}", provider_status)

    if (
        provider_status == 429
        or "429" in error_message
        or "rate limit" in error_message_lower
        or "quota" in error_message_lower
    ):
        return TransientError(f"Rate limit exceeded: {error_message}", provider_status)

    if (
        (isinstance(provider_status, int) and provider_status >= 500)
        or "503" in error_message
        or "service unavailable" in error_message_lower
    ):
        return TransientError(f"Service unavailable: {error_message}", provider_status)

    if (
        provider_status in (401, 403)
        or "401" in error_message
        or "403" in error_message
        or "unauthorized" in error_message_lower
        or "forbidden" in error_message_lower
        or "authentication" in error_message_lower
        or "invalid api token" in error_message_lower
    ):
        return PermanentError(f"Authentication failed: {error_message}", provider_status)

    if (
        "content policy" in error_message_lower
        or "nsfw" in error_message_lower
        or "safety" in error_message_lower
        or "inappropriate" in error_message_lower
    ):
        return ContentPolicyError(f"Content policy violation: {error_message}", provider_status)

    if isinstance(exception, (ConnectionError, OSError, httpx.TransportError)):
        return TransientError(f"Connection error: {error_message}", provider_status)

    return PermanentError(f"Permanent error: {error_message}", provider_status)


def _data_uri(image: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(image).decode('ascii')}"


class ReplicateImageClient:
    """Image-to-image editing through a Replicate-hosted model.

    The SDK is synchronous, so each prediction runs in a worker thread.
    """

    def __init__(self, api_token: str, model: str, timeout_seconds: int = 120):
        self.api_token = api_token
        self.model = model
        self.timeout_seconds = timeout_seconds

    async def edit(self, image: bytes, prompt: str, mime_type: str) -> bytes:
        """Edit an input product photo according to a prompt.

        Args:
            image: Input image bytes
            prompt: Full generation prompt
            mime_type: Content type of the input image

        Returns:
            Output image bytes (PNG)

        Raises:
            TransientError: Temporary failure (timeouts, rate limits, 5xx)
            ContentPolicyError: Provider refused the content
            PermanentError: Auth failures, bad output, anything unexpected
        """
        if not self.api_token:
            raise PermanentError("REPLICATE_API_TOKEN not configured")

        client = replicate.Client(api_token=self.api_token, timeout=self.timeout_seconds)
        model_input = {
            "prompt": prompt,
            "input_image": _data_uri(image, mime_type),
            "output_format": "png",
        }

        try:
            output = await asyncio.to_thread(client.run, self.model, input=model_input)
            return await self._read_output(output)

        except UpstreamError:
            raise

        except (ReplicateAPIError, ConnectionError, OSError, TimeoutError, httpx.HTTPError) as e:
            classified = classify_error(e)
            logger.warning(
                "replicate.edit.failed",
                model=self.model,
                error_type=type(classified).__name__,
                error_message=str(e),
            )
            raise classified from e

        except Exception as e:
            # Unknown failures are not retried
            raise PermanentError(f"Unexpected error: {e}") from e

    async def _read_output(self, output: Any) -> bytes:
        """Normalize the model output (file object, URL, or list of either) to bytes."""
        if isinstance(output, list):
            if not output:
                raise PermanentError("Replicate returned an empty output list")
            output = output[0]

        if hasattr(output, "read"):
            return await asyncio.to_thread(output.read)

        if isinstance(output, str) and output.startswith("http"):
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as http:
                response = await http.get(output)
                response.raise_for_status()
                return response.content

        raise PermanentError(f"Unexpected output format from Replicate: {type(output)}")
