"""
Locator Suggester Module.

Builds human readable descriptions and ranked path-query locators for a
`UiNode`. Suggested locators use the same path-query grammar the query engine
evaluates, so every suggestion can be fed straight back into a lookup. Scoped
locators that hang off a stable parent anchor are preferred.
"""

from typing import Dict, List, Optional, Union

from .ui_tree import UiNode

# Generic container ids that make poor anchors
GENERIC_IDS = ["android:id/content", "android:id/body", "id/container"]


class LocatorUtils:
    """Utility functions for quoting values in locators."""

    @staticmethod
    def quote(text: str) -> Optional[str]:
        """
        Quotes a predicate value for the path-query grammar.
        Example: User's -> "User's"

        Returns None when the value contains both quote characters, which the
        grammar cannot express.
        """
        if '"' not in text:
            return f'"{text}"'
        if "'" not in text:
            return f"'{text}'"
        return None

    @staticmethod
    def escape_debug(text: str) -> str:
        return text.replace('"', '\\"')


class LocatorSuggester:
    """
    Engine for calculating the best automation selectors.
    """

    @staticmethod
    def describe(node: UiNode) -> str:
        """
        Synthesizes the debug selector for a node: class name plus its strongest
        identifying attribute (resource id, then text, then content-desc) and the
        sibling index when it is not zero.

        Example: android.widget.Button[@text="OK"][2]
        """
        selector = node.class_name
        if node.resource_id:
            selector += f'[@resource-id="{node.resource_id}"]'
        elif node.text:
            selector += f'[@text="{LocatorUtils.escape_debug(node.text)}"]'
        elif node.content_desc:
            selector += f'[@content-desc="{LocatorUtils.escape_debug(node.content_desc)}"]'

        if node.index and node.index != '0':
            selector += f'[{node.index}]'
        return selector

    @staticmethod
    def generate_locators(node: UiNode) -> List[Dict[str, Union[str, int]]]:
        """
        Generates a list of possible locators for a specific node.

        Args:
            node (UiNode): The target node to find locators for.

        Returns:
            List[Dict[str, Union[str, int]]]: Dictionaries sorted best first with:
                - 'type': Description of the strategy (e.g., "Direct ID")
                - 'path': The path-query string.
                - 'score': A heuristic score (higher is better).
        """
        suggestions: List[Dict[str, Union[str, int]]] = []

        scoped = LocatorSuggester._generate_scoped_locator(node)
        if scoped:
            suggestions.append(scoped)

        if node.resource_id and not LocatorSuggester._is_generic(node.resource_id):
            quoted = LocatorUtils.quote(node.resource_id)
            if quoted:
                suggestions.append({
                    "type": "Direct ID",
                    "path": f"//*[@resource-id={quoted}]",
                    "score": 10
                })

        if node.content_desc:
            quoted = LocatorUtils.quote(node.content_desc)
            if quoted:
                suggestions.append({
                    "type": "Content-Desc",
                    "path": f"//*[@content-desc={quoted}]",
                    "score": 8
                })

        if node.text:
            quoted = LocatorUtils.quote(node.text)
            if quoted:
                suggestions.append({
                    "type": "Text Match",
                    "path": f"//{node.class_name}[@text={quoted}]",
                    "score": 5
                })

        suggestions.sort(key=lambda s: s["score"], reverse=True)
        return suggestions

    @staticmethod
    def _is_generic(resource_id: str) -> bool:
        return any(g in resource_id for g in GENERIC_IDS)

    @staticmethod
    def _target_step(node: UiNode) -> Optional[str]:
        if node.text:
            quoted = LocatorUtils.quote(node.text)
            if quoted:
                return f"//{node.class_name}[@text={quoted}]"
        if node.content_desc:
            quoted = LocatorUtils.quote(node.content_desc)
            if quoted:
                return f"//*[@content-desc={quoted}]"
        if node.resource_id:
            quoted = LocatorUtils.quote(node.resource_id)
            if quoted:
                return f"//*[@resource-id={quoted}]"
        return None

    @staticmethod
    def _generate_scoped_locator(node: UiNode) -> Optional[Dict[str, Union[str, int]]]:
        """
        Finds an ancestor with a stable resource-id (the anchor) and builds a
        path that searches for the target beneath it.
        """
        anchor: Optional[UiNode] = None
        for ancestor in node.ancestors():
            if ancestor.resource_id and not LocatorSuggester._is_generic(ancestor.resource_id):
                anchor = ancestor
                break

        if not anchor:
            return None

        anchor_value = LocatorUtils.quote(anchor.resource_id)
        target_step = LocatorSuggester._target_step(node)
        if not anchor_value or not target_step:
            return None

        return {
            "type": "Scoped (Parent -> Child)",
            "path": f"//*[@resource-id={anchor_value}]{target_step}",
            "score": 20
        }
