"""
Execution report format detection
Looks only at the root element (XML) or the leading characters (JSON), never parses the whole file
"""

import xml.etree.ElementTree as ET
from typing import Optional, Tuple

from livingdoc.core.exceptions import FormatDetectionError
from livingdoc.results.adapters.base import ReportAdapter, local_name, namespace_of
from livingdoc.results.adapters.cucumber_json import CucumberJsonAdapter
from livingdoc.results.adapters.junit import JUnitAdapter
from livingdoc.results.adapters.nunit2 import NUnit2Adapter
from livingdoc.results.adapters.nunit3 import NUnit3Adapter
from livingdoc.results.adapters.trx import TrxAdapter
from livingdoc.results.adapters.xunit import XUnitAdapter
from livingdoc.results.models import ReportFormat, TestExecutionReport
from livingdoc.utils.logger import setup_logger

logger = setup_logger(__name__)

# Closed set of supported formats, tried in this order
ADAPTERS: Tuple[ReportAdapter, ...] = (
    TrxAdapter(),
    NUnit3Adapter(),
    NUnit2Adapter(),
    XUnitAdapter(),
    JUnitAdapter(),
    CucumberJsonAdapter(),
)

SNIFF_CHUNK = 4096
JSON_PREFIX = 2048


def sniff_root(content: str) -> Optional[Tuple[str, str]]:
    """(local name, namespace) of the root element, or None when content is not XML"""
    text = content.lstrip('﻿ \t\r\n')
    if not text.startswith('<'):
        return None
    parser = ET.XMLPullParser(events=('start',))
    try:
        for offset in range(0, len(text), SNIFF_CHUNK):
            parser.feed(text[offset:offset + SNIFF_CHUNK])
            for _, element in parser.read_events():
                return local_name(element.tag), namespace_of(element.tag)
    except ET.ParseError:
        return None
    return None


def get_adapter(kind: ReportFormat) -> ReportAdapter:
    for adapter in ADAPTERS:
        if adapter.kind == kind:
            return adapter
    raise KeyError(kind)


def detect(content: str, source: str = "") -> ReportFormat:
    """Identify the report format; source is only used as an extension hint"""
    root = sniff_root(content)
    if root is not None:
        name, namespace = root
        for adapter in ADAPTERS:
            if adapter.matches_root(name, namespace, source):
                return adapter.kind
        return ReportFormat.UNKNOWN

    prefix = content[:JSON_PREFIX]
    for adapter in ADAPTERS:
        if adapter.matches_json(prefix):
            return adapter.kind
    return ReportFormat.UNKNOWN


def parse_report(content: str, source: str = "") -> TestExecutionReport:
    kind = detect(content, source)
    if kind == ReportFormat.UNKNOWN:
        raise FormatDetectionError(source or "<content>")
    logger.debug(f"Detected {kind.value} report: {source or '<content>'}")
    return get_adapter(kind).parse(content, source)
