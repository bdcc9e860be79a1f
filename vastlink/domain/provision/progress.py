"""
Tolerant parsing of free-text pull output

Nothing here raises on unexpected input: no match just means "no update yet".
"""
import re
from typing import Optional

from ...core.constants import BAD_CONFIG_SIGNATURES
from .models import PullProgress

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
PERCENT = re.compile(r"(\d{1,3}(?:\.\d+)?)\s*%")
SIZES = re.compile(r"(\d+(?:\.\d+)?\s*[KMGT]?i?B)\s*/\s*(\d+(?:\.\d+)?\s*[KMGT]?i?B)(?!/s)")
SPEED = re.compile(r"(\d+(?:\.\d+)?\s*[KMGT]?i?B/s)")
ETA = re.compile(r"(?<![\w.])((?:\d+h)?(?:\d+m)?\d+s|\d+h(?:\d+m)?|\d+m)(?![\w/])")


def _parse_segment(segment: str) -> Optional[PullProgress]:
    percent = completed = total = speed = eta = None
    rest_from = 0

    m = PERCENT.search(segment)
    if m:
        value = float(m.group(1))
        if value <= 100:
            percent = value
        rest_from = max(rest_from, m.end())

    m = SIZES.search(segment)
    if m:
        completed = " ".join(m.group(1).split())
        total = " ".join(m.group(2).split())
        rest_from = max(rest_from, m.end())

    m = SPEED.search(segment)
    if m:
        speed = " ".join(m.group(1).split())
        rest_from = max(rest_from, m.end())

    # the ETA column only ever trails the others
    if rest_from:
        m = ETA.search(segment, rest_from)
        if m:
            eta = m.group(1)

    if percent is None and completed is None and speed is None and eta is None:
        return None
    return PullProgress(percent=percent, completed=completed, total=total, speed=speed, eta=eta)


def parse_pull_progress(text: str) -> Optional[PullProgress]:
    """
    Most recent progress readable from a pull log.

    Progress bars redraw with carriage returns, so the log is split on both
    ``\\r`` and ``\\n`` and scanned from the end.
    """
    if not text:
        return None
    cleaned = ANSI_ESCAPE.sub("", text)
    for segment in reversed(re.split(r"[\r\n]+", cleaned)):
        segment = segment.strip()
        if not segment:
            continue
        progress = _parse_segment(segment)
        if progress is not None:
            return progress
    return None


def find_pull_error(text: str) -> Optional[str]:
    """The last ``Error: ...`` line of a pull log, if any"""
    if not text:
        return None
    cleaned = ANSI_ESCAPE.sub("", text)
    for line in reversed(re.split(r"[\r\n]+", cleaned)):
        line = line.strip()
        if line.lower().startswith("error:"):
            return line
    return None


def find_bad_config_signature(log_text: str) -> Optional[str]:
    """
    First known bad-config signature present in a gateway log.

    The list is a heuristic: a clean result does not prove a healthy gateway.
    """
    if not log_text:
        return None
    haystack = log_text.lower()
    for signature in BAD_CONFIG_SIGNATURES:
        if signature in haystack:
            return signature
    return None
