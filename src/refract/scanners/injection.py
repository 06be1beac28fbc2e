"""
Injection Append Scanner - Stage 2 of the pipeline.

Appends a suffix to one parameter's value and compares the response with a
baseline request to the untouched URL. Two signals come out of each probe:

- reflected: the suffix is echoed unescaped in an HTML, non-redirect page
- injection_suspected: the page carries a database error fingerprint

The fingerprint signal is suppressed when both the baseline and the
suffixed request answer with a 5xx status.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Optional

from ..core.urls import append_to_param
from .base_scanner import BaseScanner, StageOutput, WorkItem


# Literal substrings found in database error pages, by vendor
ERROR_FINGERPRINTS = MappingProxyType({
    "PostgreSQL": (
        "PSQLException",
        "ERROR:",
        "unterminated quoted string",
        "syntax error at or near",
    ),
    "Oracle": ("ORA-", "PLS-", "ORA-00933", "ORA-01756"),
    "MSSQL": (
        "SQLException",
        "Incorrect syntax near",
        "Unclosed quotation mark",
    ),
    "Generic": ("SQL syntax",),
})


def match_fingerprint(body: bytes) -> Optional[str]:
    """
    Vendor label of the first fingerprint found in a body.

    Args:
        body: Raw response body

    Returns:
        Vendor label, or None if no fingerprint matches
    """
    for vendor, patterns in ERROR_FINGERPRINTS.items():
        for pattern in patterns:
            if pattern.encode("utf-8") in body:
                return vendor
    return None


@dataclass(frozen=True)
class AppendOutcome:
    """Classification of one append probe"""
    reflected: bool
    injection_suspected: bool


class InjectionAppendScanner(BaseScanner):
    """
    Confirms a reflected parameter by appending an opaque marker.

    A candidate advances when the marker is echoed back or when the
    modified request triggers a database error page.

    Example:
        >>> scanner = InjectionAppendScanner(client, config)
        >>> outcome = await scanner.probe_append(url, "q", "<")
        >>> outcome.reflected
        True
    """

    def __init__(self, client, config=None, scanner_name: str = "InjectionAppendScanner"):
        super().__init__(
            scanner_name=scanner_name,
            client=client,
            config=config,
        )

    async def probe_append(self, url: str, param: str, suffix: str) -> AppendOutcome:
        """
        Probe one parameter with a suffix appended to its value.

        Args:
            url: Original URL
            param: Parameter to modify
            suffix: Text appended to the parameter's value

        Returns:
            AppendOutcome for the modified request

        Raises:
            ParseError: If the URL is malformed
            TransportError: If either request fails after retries
        """
        test_url = append_to_param(url, param, suffix)

        baseline = await self.client.fetch(url)
        response = await self.client.fetch(test_url)

        vendor = match_fingerprint(response.body)
        injection_suspected = vendor is not None

        if injection_suspected and response.status >= 500 and baseline.status >= 500:
            self.logger.debug(
                "fingerprint_suppressed",
                url=url,
                param=param,
                vendor=vendor,
                status=response.status,
                baseline_status=baseline.status,
            )
            injection_suspected = False
        elif injection_suspected:
            self.logger.debug("fingerprint_matched", url=url, param=param, vendor=vendor)

        reflected = (
            not response.is_redirect
            and response.is_html
            and response.contains(suffix)
        )

        return AppendOutcome(reflected=reflected, injection_suspected=injection_suspected)

    async def process(self, item: WorkItem) -> List[StageOutput]:
        outcome = await self.probe_append(item.url, item.param, self.config.marker)

        if outcome.reflected or outcome.injection_suspected:
            self.logger.debug(
                "append_confirmed",
                url=item.url,
                param=item.param,
                reflected=outcome.reflected,
                injection_suspected=outcome.injection_suspected,
            )
            return self.record([item])

        return self.record([])
