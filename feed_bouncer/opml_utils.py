"""
OPML reading for subscription imports.
"""
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class OpmlOutline:
    """One <outline> element: its attributes and nested outlines."""

    attributes: Dict[str, str] = field(default_factory=dict)
    children: List['OpmlOutline'] = field(default_factory=list)

    @property
    def name(self) -> str:
        """The outline's title, falling back to its text."""
        return self.attributes.get('title') or self.attributes.get('text', '')

    @property
    def xml_url(self) -> Optional[str]:
        return self.attributes.get('xmlUrl') or None


def _read_outline(element: ET.Element) -> OpmlOutline:
    return OpmlOutline(
        attributes=dict(element.attrib),
        children=[_read_outline(child) for child in element.findall('outline')],
    )


def parse_opml(file_path: str) -> List[OpmlOutline]:
    """
    Parse an OPML file into its top-level outlines.

    Args:
        file_path: Path to the OPML document

    Returns:
        Outlines directly under <body>, each with its nested children

    Raises:
        OSError: If the file cannot be read.
        xml.etree.ElementTree.ParseError: If the document is not well-formed XML.
        ValueError: If the document has no <body>.
    """
    tree = ET.parse(file_path)
    body = tree.getroot().find('body')
    if body is None:
        raise ValueError(f"{file_path} has no <body> element")

    outlines = [_read_outline(element) for element in body.findall('outline')]
    logger.debug(f"Read {len(outlines)} top-level outlines from {file_path}")
    return outlines
