"""Resolve archive.org item identifiers to label image and audio URLs."""

from __future__ import annotations

import asyncio
import logging
import re
import xml.etree.ElementTree as ET
from urllib.parse import quote

import aiohttp

from core.contracts import RecordInfo
from core.errors import FetchError

L = logging.getLogger("jukebox78.archive")

_DETAILS_RE = re.compile(r"archive\.org/details/([^/]+)")
# Characters encodeURIComponent leaves alone.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def normalize_identifier(raw: str) -> str:
    """Trim, drop leading slashes and unwrap archive.org/details/<id> URLs."""
    identifier = str(raw or "").strip().lstrip("/")
    if "archive.org" in identifier:
        match = _DETAILS_RE.search(identifier)
        if match:
            identifier = match.group(1)
    if not identifier:
        raise ValueError("Please enter a valid identifier")
    return identifier


def download_url(base_url: str, identifier: str, filename: str) -> str:
    return f"{base_url.rstrip('/')}/download/{identifier}/{filename}"


def item_image_url(base_url: str, identifier: str) -> str:
    return download_url(base_url, identifier, f"{identifier}_itemimage.jpg")


def files_xml_url(base_url: str, identifier: str) -> str:
    return download_url(base_url, identifier, f"{identifier}_files.xml")


def parse_files_xml(xml_text: str | bytes, identifier: str, base_url: str) -> RecordInfo:
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise FetchError(f"Malformed files listing for {identifier}: {e}") from e

    mp3_name = None
    for node in root.iter("file"):
        name = node.get("name") or ""
        if node.get("source") == "derivative" and name.lower().endswith(".mp3"):
            mp3_name = name
            break
    if mp3_name is None:
        raise FetchError("MP3 file not found")

    return RecordInfo(
        identifier=identifier,
        title=mp3_name.replace(".mp3", "", 1),
        image_url=item_image_url(base_url, identifier),
        mp3_url=download_url(base_url, identifier, quote(mp3_name, safe=_URI_COMPONENT_SAFE)),
    )


class ArchiveClient:
    """Async HTTP access to item metadata and images. No retries."""

    def __init__(
        self,
        base_url: str = "https://archive.org",
        timeout_s: float = 15.0,
        session: aiohttp.ClientSession | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=float(timeout_s))
        self._session = session
        self._owns_session = session is None

    @classmethod
    def from_config(cls, archive_cfg) -> "ArchiveClient":
        return cls(archive_cfg.base_url, archive_cfg.timeout_s)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def _get_bytes(self, url: str) -> bytes:
        session = self._get_session()
        try:
            async with session.get(url) as resp:
                if resp.status >= 400:
                    raise FetchError(f"Failed to fetch {url}: {resp.status} {resp.reason}")
                return await resp.read()
        except aiohttp.ClientError as e:
            raise FetchError(f"Failed to fetch {url}: {e}") from e
        except asyncio.TimeoutError as e:
            raise FetchError(f"Timed out fetching {url}") from e

    async def resolve(self, identifier: str) -> RecordInfo:
        identifier = normalize_identifier(identifier)
        xml_url = files_xml_url(self.base_url, identifier)
        L.info("resolving %s via %s", identifier, xml_url)
        data = await self._get_bytes(xml_url)
        return parse_files_xml(data, identifier, self.base_url)

    async def fetch_image(self, url: str) -> bytes:
        data = await self._get_bytes(url)
        if not data:
            raise FetchError(f"Failed to load image from {url}")
        return data

    async def close(self):
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None


__all__ = [
    "ArchiveClient",
    "files_xml_url",
    "item_image_url",
    "normalize_identifier",
    "parse_files_xml",
]
