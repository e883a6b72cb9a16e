"""
Image acquisition for workbook export.

Resolves an image reference (inline data URI or http(s) URL) into raw bytes
plus an image encoding. Every failure is soft: the caller gets None and keeps
the textual link instead of an embedded picture.
"""

import base64
import binascii
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional, Sequence
from urllib.parse import unquote_to_bytes, urlparse

import requests
from PIL import Image

logger = logging.getLogger(__name__)

# Default configuration (can be overridden)
DEFAULT_FETCH_TIMEOUT = 10.0
DEFAULT_FETCH_WORKERS = 8
DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024
DEFAULT_USER_AGENT = 'LiveWMS-Exporter/1.0'
DEFAULT_EXTENSION = 'png'

DATA_URI_PATTERN = re.compile(
    r'^data:(?P<mime>[^;,]*)(?P<params>(?:;[^,]*)?),(?P<payload>.*)$',
    re.DOTALL
)


@dataclass(frozen=True)
class ImageData:
    """
    Decoded image bytes with their encoding ('png', 'jpeg' or 'gif').

    openpyxl detects the format from the bytes when embedding, so
    ``extension`` only feeds logging.
    """
    content: bytes
    extension: str

    @property
    def size(self) -> int:
        return len(self.content)


def extension_from_mime(mime: Optional[str]) -> Optional[str]:
    """Map a MIME type to an image encoding, None when it says nothing useful."""
    mime = (mime or '').lower()
    if 'jpeg' in mime or 'jpg' in mime:
        return 'jpeg'
    if 'gif' in mime:
        return 'gif'
    if 'png' in mime:
        return 'png'
    return None


def extension_from_url(url: str) -> Optional[str]:
    """Derive an image encoding from the URL path suffix."""
    path = urlparse(url).path.lower()
    if path.endswith('.jpg') or path.endswith('.jpeg'):
        return 'jpeg'
    if path.endswith('.gif'):
        return 'gif'
    if path.endswith('.png'):
        return 'png'
    return None


def is_inline_image(reference: str) -> bool:
    return reference.startswith('data:image')


def is_remote_image(reference: str) -> bool:
    return urlparse(reference).scheme in ('http', 'https')


class ImageFetcher:
    """
    Framework-agnostic image loader.

    One fetcher can be shared by a whole export; ``acquire_many`` issues the
    remote fetches concurrently and returns results in input order.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        max_workers: int = DEFAULT_FETCH_WORKERS,
        max_bytes: int = DEFAULT_MAX_IMAGE_BYTES
    ):
        """
        Initialize image fetcher.

        Args:
            session: requests session to reuse (a new one is created if omitted)
            timeout: Per-request timeout in seconds
            max_workers: Upper bound on concurrent fetches
            max_bytes: Images larger than this are treated as unavailable
        """
        self.session = session or requests.Session()
        self.session.headers.setdefault('User-Agent', DEFAULT_USER_AGENT)
        self.timeout = timeout
        self.max_workers = max(1, max_workers)
        self.max_bytes = max_bytes

    def acquire(self, reference: Optional[str]) -> Optional[ImageData]:
        """
        Resolve one image reference.

        Returns:
            ImageData, or None if the image is unavailable for any reason
        """
        reference = (reference or '').strip()
        if not reference:
            return None

        try:
            if is_inline_image(reference):
                image = self.decode_inline(reference)
            elif is_remote_image(reference):
                image = self.fetch_remote(reference)
            else:
                logger.warning(f"Unsupported image reference: {reference[:60]}")
                return None
        except Exception as e:
            logger.warning(f"Error loading image {reference[:60]}: {e}")
            return None

        if image is None or not self._verify(image, reference):
            return None
        return image

    def acquire_many(self, references: Sequence[Optional[str]]) -> List[Optional[ImageData]]:
        """
        Resolve many references concurrently.

        Results are indexed by input position, independent of completion order.
        """
        results: List[Optional[ImageData]] = [None] * len(references)
        pending = {index: ref for index, ref in enumerate(references) if ref}
        if not pending:
            return results

        workers = min(self.max_workers, len(pending))
        logger.info(f"Loading {len(pending)} images with {workers} workers")

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                index: executor.submit(self.acquire, ref)
                for index, ref in pending.items()
            }
            for index, future in futures.items():
                results[index] = future.result()

        loaded = sum(1 for r in results if r is not None)
        logger.info(f"Loaded {loaded}/{len(pending)} images")
        return results

    def decode_inline(self, reference: str) -> Optional[ImageData]:
        """Decode a ``data:image/...`` URI."""
        match = DATA_URI_PATTERN.match(reference)
        if not match:
            logger.warning("Malformed inline image reference")
            return None

        extension = extension_from_mime(match.group('mime')) or DEFAULT_EXTENSION
        payload = match.group('payload')

        if ';base64' in match.group('params').lower():
            try:
                content = base64.b64decode(payload)
            except (binascii.Error, ValueError) as e:
                logger.warning(f"Invalid base64 inline image: {e}")
                return None
        else:
            content = unquote_to_bytes(payload)

        if not content:
            return None
        return ImageData(content=content, extension=extension)

    def fetch_remote(self, url: str) -> Optional[ImageData]:
        """Download an image over http(s)."""
        try:
            response = self.session.get(url, timeout=self.timeout, stream=True)
        except requests.RequestException as e:
            logger.warning(f"Failed to fetch image {url}: {e}")
            return None

        try:
            if not response.ok:
                logger.warning(f"Failed to fetch image {url}. Status: {response.status_code}")
                return None

            declared = response.headers.get('Content-Length')
            if declared and declared.isdigit() and int(declared) > self.max_bytes:
                logger.warning(f"Image {url} too large ({declared} bytes), skipping")
                return None

            buffer = bytearray()
            for chunk in response.iter_content(chunk_size=64 * 1024):
                buffer.extend(chunk)
                if len(buffer) > self.max_bytes:
                    logger.warning(f"Image {url} exceeds {self.max_bytes} bytes, skipping")
                    return None
        except requests.RequestException as e:
            logger.warning(f"Failed to read image {url}: {e}")
            return None
        finally:
            response.close()

        if not buffer:
            logger.warning(f"Empty image response from {url}")
            return None

        extension = (
            extension_from_mime(response.headers.get('Content-Type'))
            or extension_from_url(url)
            or DEFAULT_EXTENSION
        )
        return ImageData(content=bytes(buffer), extension=extension)

    def _verify(self, image: ImageData, reference: str) -> bool:
        """Check the bytes decode as an image before they go into a workbook."""
        try:
            with Image.open(BytesIO(image.content)) as img:
                img.verify()
        except Exception as e:
            logger.warning(f"Undecodable image {reference[:60]}: {e}")
            return False
        return True
