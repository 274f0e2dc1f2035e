r"""Single-pass line scanner shared by the iCalendar and vCard parsers.

The scanner only understands simple, single-line `KEY:value` content:
- no folded continuation lines
- no unescaping of `\,`, `\;` or `\n`
- property parameters are not split off (`DTSTART;TZID=...` is an unknown key)
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping

__all__ = ["scan_records", "split_lines"]


_LINE_SPLIT_RE = re.compile(r"\r?\n")


def split_lines(text: str) -> list[str]:
    return _LINE_SPLIT_RE.split(text)


def scan_records(
    text: str,
    component: str,
    fields: Mapping[str, str],
) -> Iterator[dict[str, str]]:
    """Yield one field dict per BEGIN:<component> ... END:<component> block.

    `fields` maps property names (e.g. "DTSTART") to output keys (e.g. "start");
    other properties are ignored. Values keep any colons after the first one.
    Blocks are yielded as accumulated; required-field checks are up to the caller.
    """
    begin = f"BEGIN:{component}"
    end = f"END:{component}"
    current: dict[str, str] | None = None

    for raw in split_lines(text):
        line = raw.strip()
        if line == begin:
            current = {}
        elif line == end:
            if current is not None:
                yield current
            current = None
        elif current is not None:
            key, _, value = line.partition(":")
            target = fields.get(key)
            if target is not None:
                current[target] = value
