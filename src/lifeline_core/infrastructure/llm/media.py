"""Media reference handling for multimodal prompts.

Evidence images arrive as storage references: either ``data:`` URIs carrying
the bytes inline, or http(s) URLs. Providers that need inline bytes resolve
them here.
"""

import base64
import binascii
import logging
import mimetypes
from dataclasses import dataclass
from typing import Optional

import aiohttp

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"
MAX_MEDIA_BYTES = 20 * 1024 * 1024


@dataclass
class InlineMedia:
    mime_type: str
    data_base64: str


def is_data_uri(reference: str) -> bool:
    return reference.startswith("data:")


def parse_data_uri(reference: str) -> InlineMedia:
    """Split ``data:<mime>;base64,<payload>`` into its parts.

    Raises:
        ValueError: If the reference is not a base64 data URI
    """
    header, sep, payload = reference.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError("Media reference is not a base64 data URI")

    mime_type = header[len("data:"):-len(";base64")] or DEFAULT_MIME_TYPE
    try:
        base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload in data URI: {e}")
    return InlineMedia(mime_type=mime_type, data_base64=payload)


def _guess_mime_type(url: str, content_type: Optional[str]) -> str:
    if content_type:
        return content_type.split(";")[0].strip()
    guessed, _ = mimetypes.guess_type(url)
    return guessed or DEFAULT_MIME_TYPE


async def fetch_inline_media(
    reference: str,
    session: aiohttp.ClientSession,
    timeout: int = 30,
) -> InlineMedia:
    """Resolve any media reference to inline base64 data.

    Raises:
        ValueError: If the reference is malformed or too large
        aiohttp.ClientError: If downloading a URL fails
    """
    if is_data_uri(reference):
        return parse_data_uri(reference)

    if not reference.startswith(("http://", "https://")):
        raise ValueError(f"Unsupported media reference: {reference[:60]}")

    async with session.get(reference, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
        response.raise_for_status()
        body = await response.read()
        content_type = response.headers.get("Content-Type")

    if len(body) > MAX_MEDIA_BYTES:
        raise ValueError(f"Media at {reference[:60]} exceeds {MAX_MEDIA_BYTES} bytes")

    logger.debug(f"Fetched {len(body)} bytes of media from {reference[:60]}")
    return InlineMedia(
        mime_type=_guess_mime_type(reference, content_type),
        data_base64=base64.b64encode(body).decode("ascii"),
    )
