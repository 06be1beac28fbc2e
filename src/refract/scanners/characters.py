"""
Character Survival Scanner - Stage 3 (terminal) of the pipeline.

Tests a fixed set of syntactically significant characters against a
confirmed parameter, one character at a time, and records which ones come
back unescaped.
"""

from typing import List

from ..core.http_client import ProbeError
from .base_scanner import Result, StageOutput, WorkItem
from .injection import InjectionAppendScanner


# Order only matters for reproducible output
PROBE_CHARSET = ('"', "'", "<", ">", "$", "|", "(", ")", "`", ":", ";", "{", "}")


class CharacterSurvivalScanner(InjectionAppendScanner):
    """
    Emits a Result for parameters that let characters through or that
    trigger database error pages.

    Example:
        >>> scanner = CharacterSurvivalScanner(client, config)
        >>> await scanner.process(WorkItem(url, "q"))
        [Result(url=..., param='q', unfiltered=('<', '>'), injection_suspected=False)]
    """

    def __init__(self, client, config=None):
        super().__init__(
            client=client,
            config=config,
            scanner_name="CharacterSurvivalScanner",
        )

    async def process(self, item: WorkItem) -> List[StageOutput]:
        unfiltered = []
        injection_suspected = False

        for char in PROBE_CHARSET:
            try:
                outcome = await self.probe_append(item.url, item.param, char)
            except ProbeError as e:
                self.logger.warning(
                    "character_probe_failed",
                    url=item.url,
                    param=item.param,
                    char=char,
                    error=str(e),
                )
                continue

            if outcome.reflected:
                unfiltered.append(char)
            if outcome.injection_suspected:
                injection_suspected = True

        if not unfiltered and not injection_suspected:
            return self.record([])

        result = Result(
            url=item.url,
            param=item.param,
            unfiltered=tuple(unfiltered),
            injection_suspected=injection_suspected,
        )

        self.logger.info(
            "result_found",
            url=item.url,
            param=item.param,
            unfiltered="".join(unfiltered),
            injection_suspected=injection_suspected,
        )

        return self.record([result])
