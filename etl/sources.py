# WORKFLOW: Static configuration of the publishers this service ingests.
# Used by: Fetchers (endpoint, content kind), orchestrator (parser dispatch), API/CLI (names)
# Sources:
# 1. OFAC - SDN list as delimited text
# 2. UN - Consolidated list, legacy HTML rendering
# 3. EU - Regime document as PDF (presence-only)
#
# Adding a source means adding one SourceConfig entry; nothing type-tests payloads at runtime.

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

from core.config import Settings, settings as default_settings
from etl.parsers import DelimitedTextParser, HtmlTableParser, OpaqueParser, Parser


class SourceName(str, Enum):
    OFAC = "OFAC"
    UN = "UN"
    EU = "EU"


class ContentKind(str, Enum):
    TEXT = "text"
    HTML = "html"
    BINARY = "binary"


@dataclass(frozen=True)
class SourceConfig:
    name: SourceName
    url: str
    kind: ContentKind
    parser: Parser


def build_sources(config: Settings = None) -> Dict[SourceName, SourceConfig]:
    """Build the configured publishers, keyed and ordered by name."""
    config = config or default_settings
    cap = config.max_records_per_source
    return {
        SourceName.OFAC: SourceConfig(
            name=SourceName.OFAC,
            url=config.ofac_csv_url,
            kind=ContentKind.TEXT,
            parser=DelimitedTextParser(null_tokens=("-0-",), max_records=cap),
        ),
        SourceName.UN: SourceConfig(
            name=SourceName.UN,
            url=config.un_html_url,
            kind=ContentKind.HTML,
            parser=HtmlTableParser(max_records=cap),
        ),
        SourceName.EU: SourceConfig(
            name=SourceName.EU,
            url=config.eu_pdf_url,
            kind=ContentKind.BINARY,
            parser=OpaqueParser(),
        ),
    }


def select_sources(
    sources: Dict[SourceName, SourceConfig],
    names: Optional[Iterable[SourceName]] = None,
) -> List[SourceConfig]:
    """Return the sources to run, in configuration order."""
    if not names:
        return list(sources.values())
    wanted = {SourceName(n) for n in names}
    return [source for name, source in sources.items() if name in wanted]
