"""
HttpLayoutStorage adapter for the Region Designer assembly layer.

Implements the LayoutStorage protocol against the content server's template
and page endpoints. Documents travel as XML bodies.
"""

from __future__ import annotations

import logging

import httpx

from designer.config import settings
from designer.kernel.assembly import LayoutStorage
from designer.kernel.errors import LoadFailed, SaveFailed

logger = logging.getLogger(__name__)

XML_CONTENT_TYPE = "application/xml"


class HttpLayoutStorage(LayoutStorage):
    """
    HTTP storage for template/page XML.

    Pass `client` to reuse a connection pool (or a MockTransport in tests);
    otherwise one is created from settings and closed by aclose().
    """

    def __init__(
        self,
        api_url: str | None = None,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_url = (api_url or settings.API_URL).rstrip("/")
        self.token = token if token is not None else settings.API_TOKEN
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)

    def _headers(self) -> dict:
        """Build request headers."""
        headers = {"Content-Type": XML_CONTENT_TYPE, "Accept": XML_CONTENT_TYPE}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _url(self, path_template: str, document_id: str) -> str:
        return f"{self.api_url}{path_template.format(id=document_id)}"

    async def _get(self, url: str) -> str | None:
        try:
            res = await self.client.get(url, headers=self._headers())
            if res.status_code == 404:
                return None
            res.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("GET %s failed: %s", url, e)
            raise LoadFailed(f"Could not fetch {url}: {e}") from e
        return res.text

    async def _put(self, url: str, xml: str) -> None:
        try:
            res = await self.client.put(url, content=xml.encode("utf-8"), headers=self._headers())
            res.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("PUT %s failed: %s", url, e)
            raise SaveFailed(f"Could not save {url}: {e}") from e

    async def get_template(self, template_id: str) -> str | None:
        return await self._get(self._url(settings.TEMPLATE_PATH, template_id))

    async def put_template(self, template_id: str, xml: str) -> None:
        await self._put(self._url(settings.TEMPLATE_PATH, template_id), xml)

    async def get_page(self, page_id: str) -> str | None:
        return await self._get(self._url(settings.PAGE_PATH, page_id))

    async def put_page(self, page_id: str, xml: str) -> None:
        await self._put(self._url(settings.PAGE_PATH, page_id), xml)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
