"""
Pipeline stage scanners.

Each scanner inherits from BaseScanner and implements the process() method.

Stages:
- ReflectionScanner: query values echoed in the response (stage 1)
- InjectionAppendScanner: opaque marker confirmation (stage 2)
- CharacterSurvivalScanner: unescaped character probing (stage 3)
"""

from .base_scanner import (
    BaseScanner,
    WorkItem,
    Result,
    StageOutput,
)

from .reflection import ReflectionScanner
from .injection import (
    InjectionAppendScanner,
    AppendOutcome,
    ERROR_FINGERPRINTS,
    match_fingerprint,
)
from .characters import CharacterSurvivalScanner, PROBE_CHARSET


__all__ = [
    # Base classes
    "BaseScanner",
    "WorkItem",
    "Result",
    "StageOutput",
    # Scanners
    "ReflectionScanner",
    "InjectionAppendScanner",
    "CharacterSurvivalScanner",
    # Classification
    "AppendOutcome",
    "ERROR_FINGERPRINTS",
    "PROBE_CHARSET",
    "match_fingerprint",
]
