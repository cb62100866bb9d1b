# WORKFLOW: Format parsers turning publisher payloads into candidate entities.
# Used by: Run orchestrator (dispatched statically from source configuration)
# Parsers:
# 1. DelimitedTextParser - Line-by-line quoted-field CSV with a case-insensitive header map
# 2. HtmlTableParser - Tolerant tag-stripping scan of table rows
# 3. OpaqueParser - Presence-only sources; yields nothing, checksum only
#
# Parsing flow: Payload -> Strategy.parse() -> [CandidateEntity] (capped per run)
# Malformed records are dropped and counted in the log; they never fail the run.

"""
Source-specific parsers behind one ``parse(content) -> candidates`` contract.
"""

import csv
import html
import io
import itertools
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from etl.errors import ParseError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECORDS = 2000


@dataclass(frozen=True)
class CandidateEntity:
    """One entity extracted from a payload, before it gets a key."""
    name: str
    program: Optional[str] = None
    country: Optional[str] = None
    aliases: Optional[List[str]] = None
    identifiers: Dict[str, Any] = field(default_factory=dict)


class Parser:
    """Shared contract of every format parser."""

    def parse(self, content: Union[str, bytes]) -> List[CandidateEntity]:
        raise NotImplementedError


def _as_text(content: Union[str, bytes]) -> str:
    if isinstance(content, bytes):
        try:
            return content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ParseError(f"Payload is not valid UTF-8 text: {e}") from e
    return content


class DelimitedTextParser(Parser):
    """
    Delimited text with a header row.

    Each line is tokenised on its own, so a stray quote spoils only its own
    record. Quoted fields may contain the delimiter and doubled quotes.
    Rows whose column count differs from the header are dropped. A row with
    an empty name is skipped.
    """

    def __init__(
        self,
        delimiter: str = ",",
        name_columns: Sequence[str] = ("name", "sdn_name"),
        program_column: str = "program",
        country_column: str = "country",
        null_tokens: Sequence[str] = (),
        max_records: int = DEFAULT_MAX_RECORDS,
    ):
        self.delimiter = delimiter
        self.name_columns = [c.lower() for c in name_columns]
        self.program_column = program_column.lower()
        self.country_column = country_column.lower()
        self.null_tokens = set(null_tokens)
        self.max_records = max_records

    def parse(self, content: Union[str, bytes]) -> List[CandidateEntity]:
        text = _as_text(content)
        lines = (line.rstrip("\n") for line in io.StringIO(text, newline=None) if line.strip())
        header_line = next(lines, None)
        if header_line is None:
            return []
        header = self._tokenise(header_line)
        if header is None:
            raise ParseError("Delimited payload header could not be tokenised")

        header = [h.strip().lower() for h in header]
        name_idx = self._index(header, *self.name_columns)
        if name_idx is None:
            # Headerless exports (e.g. OFAC SDN.csv) carry the name first.
            name_idx = 0
        program_idx = self._index(header, self.program_column)
        country_idx = self._index(header, self.country_column)

        candidates = []
        malformed = 0
        empty = 0
        for line in itertools.islice(lines, self.max_records):
            row = self._tokenise(line)
            if row is None or len(row) != len(header):
                malformed += 1
                continue
            cols = [self._clean(value) for value in row]
            name = cols[name_idx]
            if not name:
                empty += 1
                continue
            candidates.append(CandidateEntity(
                name=name,
                program=cols[program_idx] if program_idx is not None else None,
                country=cols[country_idx] if country_idx is not None else None,
            ))

        if next(lines, None) is not None:
            logger.warning(f"Delimited payload truncated to {self.max_records} records")
        if malformed or empty:
            logger.info(f"Delimited payload: skipped {malformed} malformed and {empty} unnamed rows")
        return candidates

    def _tokenise(self, line: str) -> Optional[List[str]]:
        try:
            return next(csv.reader([line], delimiter=self.delimiter, strict=True), [])
        except csv.Error:
            return None

    @staticmethod
    def _index(header: List[str], *names: str) -> Optional[int]:
        for name in names:
            if name in header:
                return header.index(name)
        return None

    def _clean(self, value: str) -> Optional[str]:
        value = value.strip()
        if not value or value in self.null_tokens:
            return None
        return value


_ROW_CELL = re.compile(r"<tr[^>]*>\s*<td[^>]*>((?:(?!</td>).){3,120}?)</td>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


class HtmlTableParser(Parser):
    """
    Scrapes the first cell of each table row.

    This is a tolerant regex scan, not an HTML parser. Markup nested in the
    cell (links, emphasis) is stripped; names are then unescaped,
    whitespace-collapsed and de-duplicated within one payload.
    """

    def __init__(self, max_records: int = DEFAULT_MAX_RECORDS):
        self.max_records = max_records

    def parse(self, content: Union[str, bytes]) -> List[CandidateEntity]:
        text = _as_text(content)
        names = {}
        for match in _ROW_CELL.finditer(text):
            name = _TAG.sub("", match.group(1))
            name = _WHITESPACE.sub(" ", html.unescape(name)).strip()
            if name:
                names.setdefault(name, None)
            if len(names) > self.max_records:
                logger.warning(f"HTML payload truncated to {self.max_records} names")
                break

        return [CandidateEntity(name=name) for name in list(names)[:self.max_records]]


class OpaqueParser(Parser):
    """Presence-only source: the payload is tracked by checksum, never parsed."""

    def parse(self, content: Union[str, bytes]) -> List[CandidateEntity]:
        return []
