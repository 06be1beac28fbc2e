"""
Reflection Scanner - Stage 1 of the pipeline.

Fetches a URL once and reports which query parameters have their value
echoed verbatim in the response body. Every reflected parameter becomes a
(URL, parameter) candidate for the marker check in stage 2.
"""

from typing import List

from ..core.urls import parse_target, query_pairs
from .base_scanner import BaseScanner, StageOutput, WorkItem


class ReflectionScanner(BaseScanner):
    """
    Finds query parameters whose values appear in the response body.

    Redirects and non-HTML responses are never reported. Empty values are
    ignored since every body trivially contains the empty string.

    Example:
        >>> scanner = ReflectionScanner(client, config)
        >>> await scanner.detect_reflected("https://example.com/?q=hello")
        ['q']
    """

    def __init__(self, client, config=None):
        super().__init__(
            scanner_name="ReflectionScanner",
            client=client,
            config=config,
        )

    async def detect_reflected(self, url: str) -> List[str]:
        """
        Names of the parameters reflected by the server.

        Args:
            url: URL to fetch

        Returns:
            Unique parameter names, in query order

        Raises:
            ParseError: If the URL is malformed
            TransportError: If the request fails after retries
        """
        # Validate before spending a request on it
        parse_target(url)

        response = await self.client.fetch(url)

        if response.is_redirect:
            self.logger.debug("reflection_skipped_redirect", url=url, status=response.status)
            return []
        if not response.is_html:
            self.logger.debug(
                "reflection_skipped_content_type",
                url=url,
                content_type=response.headers.get("Content-Type"),
            )
            return []

        reflected = []
        for name, value in query_pairs(url):
            if not value or name in reflected:
                continue
            if response.contains(value):
                reflected.append(name)

        return reflected

    async def process(self, item: WorkItem) -> List[StageOutput]:
        params = await self.detect_reflected(item.url)

        if params:
            self.logger.info("parameters_reflected", url=item.url, params=params)

        return self.record([WorkItem(url=item.url, param=name) for name in params])
