"""
UI Tree Model Module.

Typed representation of an Android view hierarchy: `Bounds` geometry, the
`UiNode` element and the immutable `Snapshot` that owns a parsed tree.
"""

import re
import weakref
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

BOUNDS_PATTERN = re.compile(r'\[(-?\d+),(-?\d+)\]\[(-?\d+),(-?\d+)\]')

DEFAULT_CLASS = "android.view.View"
DEFAULT_BOUNDS = "[0,0][0,0]"

# XML attribute name -> (python field, default when absent)
FLAG_ATTRIBUTES: Dict[str, Tuple[str, bool]] = {
    "clickable": ("clickable", False),
    "long-clickable": ("long_clickable", False),
    "enabled": ("enabled", True),
    "selected": ("selected", False),
    "focused": ("focused", False),
    "focusable": ("focusable", False),
    "scrollable": ("scrollable", False),
    "checkable": ("checkable", False),
    "checked": ("checked", False),
    "password": ("password", False),
    "visible-to-user": ("visible_to_user", True),
}

STRING_ATTRIBUTES: Dict[str, str] = {
    "class": "class_name",
    "resource-id": "resource_id",
    "text": "text",
    "content-desc": "content_desc",
    "package": "package",
    "index": "index",
    "bounds": "bounds_str",
}

# Any accepted spelling -> canonical XML attribute name
ATTRIBUTE_ALIASES: Dict[str, str] = {}
for _xml_name, (_field, _default) in FLAG_ATTRIBUTES.items():
    ATTRIBUTE_ALIASES[_xml_name] = _xml_name
    ATTRIBUTE_ALIASES[_field] = _xml_name
for _xml_name, _field in STRING_ATTRIBUTES.items():
    ATTRIBUTE_ALIASES[_xml_name] = _xml_name
    ATTRIBUTE_ALIASES[_field] = _xml_name
ATTRIBUTE_ALIASES.update({
    "className": "class",
    "resourceId": "resource-id",
    "contentDesc": "content-desc",
    "longClickable": "long-clickable",
    "visibleToUser": "visible-to-user",
})


@dataclass(frozen=True)
class Bounds:
    """Screen rectangle with inclusive edges, `x2 >= x1` and `y2 >= y1`."""

    x1: int
    y1: int
    x2: int
    y2: int

    @staticmethod
    def parse(bounds_str: str) -> Optional['Bounds']:
        """
        Parses the "[x1,y1][x2,y2]" encoding used by uiautomator.

        Returns None when the text does not match or the rectangle is inverted.
        """
        match = BOUNDS_PATTERN.search(bounds_str or "")
        if not match:
            return None
        x1, y1, x2, y2 = map(int, match.groups())
        if x2 < x1 or y2 < y1:
            return None
        return Bounds(x1, y1, x2, y2)

    @property
    def width(self) -> int:
        return self.x2 - self.x1

    @property
    def height(self) -> int:
        return self.y2 - self.y1

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def center(self) -> Tuple[int, int]:
        return ((self.x1 + self.x2) // 2, (self.y1 + self.y2) // 2)

    def contains(self, other: 'Bounds') -> bool:
        return is_within(other, self)

    def union(self, other: 'Bounds') -> 'Bounds':
        return Bounds(min(self.x1, other.x1), min(self.y1, other.y1),
                      max(self.x2, other.x2), max(self.y2, other.y2))

    def to_str(self) -> str:
        return f"[{self.x1},{self.y1}][{self.x2},{self.y2}]"

    def to_dict(self) -> Dict[str, int]:
        cx, cy = self.center
        return {"x1": self.x1, "y1": self.y1, "x2": self.x2, "y2": self.y2,
                "center_x": cx, "center_y": cy, "width": self.width, "height": self.height}


def is_within(child: Bounds, parent: Bounds) -> bool:
    """True when every edge of `child` lies within or on the edges of `parent`."""
    return (child.x1 >= parent.x1 and child.y1 >= parent.y1
            and child.x2 <= parent.x2 and child.y2 <= parent.y2)


def format_flag(value: bool) -> str:
    return "true" if value else "false"


class UiNode:
    """
    Represents a single UI element in the Android view hierarchy.
    """
    def __init__(self, element: ET.Element, parent: Optional['UiNode'] = None, node_id: int = 0):
        """
        Initializes a UiNode from an XML element.

        Args:
            element (ET.Element): The raw `<node>` element.
            parent (Optional[UiNode]): The parent node in the logical tree.
            node_id (int): Identifier unique within the owning snapshot.
        """
        self.node_id: int = node_id
        self._parent_ref: Optional['weakref.ReferenceType[UiNode]'] = weakref.ref(parent) if parent is not None else None
        self.children: List['UiNode'] = []
        self.attributes: Dict[str, str] = dict(element.attrib)

        # String Attributes
        self.class_name: str = element.get('class') or DEFAULT_CLASS
        self.resource_id: str = element.get('resource-id', '')
        self.text: str = element.get('text', '')
        self.content_desc: str = element.get('content-desc', '')
        self.package: str = element.get('package', '')
        self.index: str = element.get('index') or '0'

        # Boolean Flags
        self.clickable: bool = self._flag(element, 'clickable')
        self.long_clickable: bool = self._flag(element, 'long-clickable')
        self.enabled: bool = self._flag(element, 'enabled')
        self.selected: bool = self._flag(element, 'selected')
        self.focused: bool = self._flag(element, 'focused')
        self.focusable: bool = self._flag(element, 'focusable')
        self.scrollable: bool = self._flag(element, 'scrollable')
        self.checkable: bool = self._flag(element, 'checkable')
        self.checked: bool = self._flag(element, 'checked')
        self.password: bool = self._flag(element, 'password')
        self.visible_to_user: bool = self._flag(element, 'visible-to-user')

        # Bounds: raw text kept verbatim, rectangle is None when unusable
        self.bounds_str: str = element.get('bounds') or DEFAULT_BOUNDS
        self.bounds: Optional[Bounds] = Bounds.parse(self.bounds_str)

        # Debug selector, filled in by the parser
        self.selector: str = self.class_name

    @staticmethod
    def _flag(element: ET.Element, name: str) -> bool:
        default = FLAG_ATTRIBUTES[name][1]
        raw = element.get(name)
        if raw is None or raw == '':
            return default
        return raw.strip().lower() == 'true'

    @property
    def parent(self) -> Optional['UiNode']:
        return self._parent_ref() if self._parent_ref is not None else None

    def add_child(self, child_node: 'UiNode') -> None:
        self.children.append(child_node)

    @property
    def center(self) -> Optional[Tuple[int, int]]:
        return self.bounds.center if self.bounds else None

    @property
    def size(self) -> Optional[Tuple[int, int]]:
        return self.bounds.size if self.bounds else None

    @property
    def has_area(self) -> bool:
        return self.bounds is not None and self.bounds.width > 0 and self.bounds.height > 0

    @property
    def is_visible(self) -> bool:
        return self.visible_to_user and self.has_area

    @property
    def depth(self) -> int:
        return sum(1 for _ in self.ancestors())

    def ancestors(self) -> Iterator['UiNode']:
        current = self.parent
        while current is not None:
            yield current
            current = current.parent

    def iter_preorder(self) -> Iterator['UiNode']:
        return iter_preorder(self)

    def iter_descendants(self) -> Iterator['UiNode']:
        """Pre-order iteration excluding the node itself."""
        for child in self.children:
            yield from iter_preorder(child)

    def attribute(self, name: str) -> Optional[str]:
        """
        Returns the stringified attribute value as it would appear in the dump.

        Known attributes may be addressed by XML name ("resource-id") or field
        name ("resource_id") and always resolve, using defaults when the dump
        omitted them. Unknown names fall through to the raw attributes.
        """
        xml_name = ATTRIBUTE_ALIASES.get(name)
        if xml_name is None:
            return self.attributes.get(name)
        if xml_name in FLAG_ATTRIBUTES:
            return format_flag(getattr(self, FLAG_ATTRIBUTES[xml_name][0]))
        return getattr(self, STRING_ATTRIBUTES[xml_name])

    def to_dict(self, recursive: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.node_id,
            "class": self.class_name,
            "resource-id": self.resource_id,
            "text": self.text,
            "content-desc": self.content_desc,
            "package": self.package,
            "index": self.index,
            "bounds": self.bounds_str,
            "selector": self.selector,
        }
        for xml_name, (field_name, _) in FLAG_ATTRIBUTES.items():
            data[xml_name] = getattr(self, field_name)
        if recursive:
            data["children"] = [child.to_dict() for child in self.children]
        return data

    def __repr__(self) -> str:
        return f"<UiNode #{self.node_id} {self.selector}>"


def iter_preorder(root: UiNode) -> Iterator[UiNode]:
    """Depth-first, parent before children, children in document order."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


@dataclass(frozen=True)
class Snapshot:
    """
    A parsed hierarchy plus the time it was captured.

    Snapshots are never modified; a new capture produces a new Snapshot.
    """

    root: UiNode
    captured_at: float
    degraded: bool = False
    diagnostic: Optional[str] = None

    def iter_nodes(self) -> Iterator[UiNode]:
        return iter_preorder(self.root)

    @property
    def node_count(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    def find_by_id(self, node_id: int) -> Optional[UiNode]:
        for node in self.iter_nodes():
            if node.node_id == node_id:
                return node
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "captured_at": self.captured_at,
            "degraded": self.degraded,
            "diagnostic": self.diagnostic,
            "root": self.root.to_dict(),
        }
