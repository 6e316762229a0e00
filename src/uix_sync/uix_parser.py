"""
UI XML Parser Module.

This module is responsible for parsing raw Android UIAutomator XML dumps into an
immutable `Snapshot` of `UiNode` objects. Real-world dumps are sanitized first
(leading adb noise, control characters, stray ampersands, trailing shell output).
Parsing never raises: unusable input produces a degraded single-node snapshot
that carries a diagnostic marker.
"""

import itertools
import logging
import re
import time
import xml.etree.ElementTree as ET
from typing import Optional, Union

from .locator_suggester import LocatorSuggester
from .ui_tree import Bounds, Snapshot, UiNode

logger = logging.getLogger(__name__)

PARSE_FAILURE_TEXT = "UI Parsing Failed - Please refresh"
PARSE_FAILURE_DESC = "UI hierarchy could not be parsed"

_FAILURE_ATTRIBUTES = {
    "index": "0",
    "class": "android.widget.FrameLayout",
    "resource-id": "",
    "text": PARSE_FAILURE_TEXT,
    "content-desc": PARSE_FAILURE_DESC,
    "bounds": "[0,0][1080,1920]",
    "clickable": "false",
    "enabled": "true",
    "visible-to-user": "true",
}

CONTROL_CHARS = re.compile(r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]')
STRAY_AMPERSAND = re.compile(r'&(?![a-zA-Z0-9#]{1,8};)')
XML_DECLARATION = re.compile(r'<\?xml.*?\?>', re.DOTALL)


class UixParser:
    """
    Static Parser engine for UIX dumps.
    """

    @staticmethod
    def _sanitize_xml(raw: str) -> str:
        """
        Cleans a raw dump before structural parsing.

        Trims junk before the XML (adb warnings) and after the closing root tag
        (the "UI hierchary dumped to: /dev/tty" trailer), removes control
        characters and escapes ampersands that do not start an entity.
        """
        if not raw:
            return raw

        text = raw.strip()

        # Remove leading garbage before the declaration or root tag
        start_match = re.search(r'<\?xml|<hierarchy', text)
        if start_match:
            text = text[start_match.start():]

        text = XML_DECLARATION.sub('', text)
        text = CONTROL_CHARS.sub('', text)
        text = STRAY_AMPERSAND.sub('&amp;', text)

        # Prefer a complete <hierarchy> block if present
        start = text.find("<hierarchy")
        end = text.rfind("</hierarchy>")
        if start != -1 and end != -1 and end > start:
            return text[start:end + len("</hierarchy>")]

        return text.strip()

    @staticmethod
    def degraded_snapshot(diagnostic: str, captured_at: Optional[float] = None) -> Snapshot:
        """
        Builds the single-node placeholder snapshot used when a dump cannot be parsed.
        """
        root = UiNode(ET.Element("node", dict(_FAILURE_ATTRIBUTES)))
        root.selector = LocatorSuggester.describe(root)
        return Snapshot(
            root=root,
            captured_at=time.monotonic() if captured_at is None else captured_at,
            degraded=True,
            diagnostic=diagnostic,
        )

    @staticmethod
    def parse(source: Union[str, bytes, None], captured_at: Optional[float] = None) -> Snapshot:
        """
        Parses an XML dump (string or bytes) into a Snapshot.

        Args:
            source (Union[str, bytes, None]): Raw uiautomator dump.
            captured_at (Optional[float]): Capture timestamp; defaults to `time.monotonic()`.

        Returns:
            Snapshot: The parsed tree, or a degraded single-node snapshot on failure.
        """
        if captured_at is None:
            captured_at = time.monotonic()
        preview = ""
        try:
            if isinstance(source, bytes):
                source = source.decode('utf-8', errors='replace')
            if not source or not source.strip():
                raise ValueError("empty hierarchy dump")
            preview = source[:200]

            cleaned = UixParser._sanitize_xml(source)
            root_element = ET.fromstring(cleaned)
            if root_element.tag != 'hierarchy':
                raise ValueError(f"missing <hierarchy> root (found <{root_element.tag}>)")

            top_level = [child for child in root_element if child.tag == 'node']
            if not top_level:
                raise ValueError("hierarchy contains no <node> elements")

            ids = itertools.count()

            # Recursive Builder: ids follow pre-order, so they equal document position
            def build(element: ET.Element, parent: Optional[UiNode] = None) -> UiNode:
                node = UiNode(element, parent, node_id=next(ids))
                node.selector = LocatorSuggester.describe(node)
                for child in element:
                    if child.tag == 'node':
                        node.add_child(build(child, node))
                return node

            if len(top_level) == 1:
                root_node = build(top_level[0])
            else:
                # Multi-window dump: wrap the windows in one synthetic container
                root_node = UiNode(ET.Element("node", {"class": "hierarchy", "index": "0"}), node_id=next(ids))
                for element in top_level:
                    root_node.add_child(build(element, root_node))
                UixParser._cover_children(root_node)
                root_node.selector = LocatorSuggester.describe(root_node)

            logger.debug("Parsed hierarchy with %d nodes", next(ids))
            return Snapshot(root=root_node, captured_at=captured_at)

        except Exception as e:
            logger.warning("XML Parse Error: %s | preview: %r", e, preview)
            return UixParser.degraded_snapshot(f"{type(e).__name__}: {e}", captured_at)

    @staticmethod
    def _cover_children(container: UiNode) -> None:
        """Sets the container's bounds to the union of its children's bounds."""
        union: Optional[Bounds] = None
        for child in container.children:
            if child.bounds is None:
                continue
            union = child.bounds if union is None else union.union(child.bounds)
        if union is not None:
            container.bounds = union
            container.bounds_str = union.to_str()
