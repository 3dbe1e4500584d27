"""Image provider client tests: error classification and output normalization."""

import io

import httpx
import pytest

from commercepix.services.exceptions import ContentPolicyError, PermanentError, TransientError
from commercepix.services.image_generation.replicate_client import (
    ReplicateImageClient,
    classify_error,
)


class StatusError(Exception):
    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


@pytest.mark.parametrize(
    "exception, expected",
    [
        (TimeoutError("read timeout"), TransientError),
        (httpx.ReadTimeout("timed out"), TransientError),
        (StatusError("Too many requests", 429), TransientError),
        (StatusError("Internal server error", 500), TransientError),
        (StatusError("Invalid API token", 401), PermanentError),
        (Exception("NSFW content detected"), ContentPolicyError),
        (ConnectionError("connection reset"), TransientError),
        (Exception("model version does not exist"), PermanentError),
    ],
)
def test_classify_error(exception, expected):
    classified = classify_error(exception)

    assert type(classified) is expected
    assert str(exception) in classified.message


def test_classify_error_keeps_provider_status():
    classified = classify_error(StatusError("Service unavailable", 503))

    assert classified.provider_status == 503
    assert classified.retryable is True


@pytest.mark.asyncio
async def test_edit_without_token_is_permanent_error():
    client = ReplicateImageClient(api_token="", model="owner/model")

    with pytest.raises(PermanentError, match="REPLICATE_API_TOKEN"):
        await client.edit(b"image", "prompt", "image/png")


@pytest.mark.asyncio
async def test_read_output_accepts_file_like_and_lists():
    client = ReplicateImageClient(api_token="token", model="owner/model")

    assert await client._read_output(io.BytesIO(b"png")) == b"png"
    assert await client._read_output([io.BytesIO(b"first"), io.BytesIO(b"second")]) == b"first"


@pytest.mark.asyncio
async def test_read_output_rejects_unexpected_shapes():
    client = ReplicateImageClient(api_token="token", model="owner/model")

    with pytest.raises(PermanentError, match="empty output list"):
        await client._read_output([])
    with pytest.raises(PermanentError, match="Unexpected output format"):
        await client._read_output({"image": "data"})
