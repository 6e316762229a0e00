"""
Query Engine Module.

Evaluates compiled selectors against a parsed `UiNode` tree. Results are always
returned in pre-order (document order), so the first result is the canonical
answer for "find one". Evaluation is read-only.
"""

from typing import Callable, Dict, List, Optional, Set

from .selector import (
    AXIS_DESCENDANT,
    AlternativesSelector,
    BaseSelector,
    FieldCondition,
    PathPredicate,
    PathQuerySelector,
    PathStep,
    PredicateSelector,
    SelectorKind,
    SelectorLike,
    ShorthandSelector,
    SHORTHAND_ATTR_CONTAINS,
    SHORTHAND_ATTR_EQUALS,
    SHORTHAND_ATTR_EXISTS,
    SHORTHAND_CLASS,
    SHORTHAND_ID,
    compile_selector,
)
from .ui_tree import ATTRIBUTE_ALIASES, FLAG_ATTRIBUTES, UiNode, format_flag, iter_preorder


def resource_id_matches(resource_id: str, value: str) -> bool:
    """Exact match, or `value` is the short name of a "<package>:id/<name>" id."""
    return resource_id == value or resource_id.endswith(f":id/{value}")


class QueryEngine:
    """
    Static selector evaluation engine.
    """

    @staticmethod
    def find_all(root: UiNode, selector: SelectorLike) -> List[UiNode]:
        """
        Returns every node matching `selector`, in pre-order.

        Args:
            root (UiNode): Root of the tree to search.
            selector (SelectorLike): Compiled selector or raw selector input.
        """
        compiled = compile_selector(selector)
        return _EVALUATORS[compiled.kind](root, compiled)

    @staticmethod
    def find_one(root: UiNode, selector: SelectorLike) -> Optional[UiNode]:
        """Returns the first pre-order match, or None."""
        compiled = compile_selector(selector)
        if compiled.kind in (SelectorKind.PREDICATE, SelectorKind.SHORTHAND):
            for node in iter_preorder(root):
                if QueryEngine._matches_node(node, compiled):
                    return node
            return None
        results = _EVALUATORS[compiled.kind](root, compiled)
        return results[0] if results else None

    @staticmethod
    def count(root: UiNode, selector: SelectorLike) -> int:
        return len(QueryEngine.find_all(root, selector))

    @staticmethod
    def matches(node: UiNode, selector: SelectorLike, root: Optional[UiNode] = None) -> bool:
        """
        Tests a single node.

        Predicate and shorthand selectors only look at the node itself. Path and
        alternatives selectors depend on tree position, so they are evaluated from
        `root` (or the node's topmost ancestor) and checked for membership.

        Parent links are weak: once the owning `Snapshot` (or its root node) is
        garbage collected, `node.parent` is None and the node is treated as a
        root of its own. Keep the snapshot alive, or pass `root`, when testing a
        path selector against a node.
        """
        compiled = compile_selector(selector)
        if compiled.kind in (SelectorKind.PREDICATE, SelectorKind.SHORTHAND):
            return QueryEngine._matches_node(node, compiled)
        if root is None:
            root = node
            for ancestor in node.ancestors():
                root = ancestor
        return any(match is node for match in QueryEngine.find_all(root, compiled))

    @staticmethod
    def _matches_node(node: UiNode, selector: BaseSelector) -> bool:
        if isinstance(selector, PredicateSelector):
            return QueryEngine._match_predicate(node, selector)
        if isinstance(selector, ShorthandSelector):
            return QueryEngine._match_shorthand(node, selector)
        return False

    # Predicate selectors

    @staticmethod
    def _match_predicate(node: UiNode, selector: PredicateSelector) -> bool:
        # Conjunction: every listed field must hold
        return all(QueryEngine._match_condition(node, cond) for cond in selector.conditions)

    @staticmethod
    def _match_value(actual: str, expected) -> bool:
        if isinstance(expected, str):
            return actual == expected
        return expected.search(actual or '') is not None

    @staticmethod
    def _match_condition(node: UiNode, cond: FieldCondition) -> bool:
        field, value = cond.field, cond.value
        if field == "text":
            return QueryEngine._match_value(node.text, value)
        if field == "content_desc":
            return QueryEngine._match_value(node.content_desc, value)
        if field == "class_name":
            return QueryEngine._match_value(node.class_name, value)
        if field == "resource_id":
            if isinstance(value, str):
                return resource_id_matches(node.resource_id, value)
            return value.search(node.resource_id) is not None
        if field == "contains":
            return value in node.text.lower() or value in node.content_desc.lower()
        if field == "text_matches":
            return value.search(node.text) is not None or value.search(node.content_desc) is not None
        if field in FLAG_ATTRIBUTES:
            return format_flag(getattr(node, FLAG_ATTRIBUTES[field][0])) == value
        if field == "index":
            return node.index == value
        if field == "bounds":
            return node.bounds_str == value
        if field == "package":
            return node.package == value
        # Passthrough for keys outside the known fields
        actual = node.attribute(cond.attribute)
        return actual is not None and actual == value

    # Shorthand selectors

    @staticmethod
    def _match_shorthand(node: UiNode, selector: ShorthandSelector) -> bool:
        mode, value = selector.mode, selector.value
        if mode == SHORTHAND_ID:
            return resource_id_matches(node.resource_id, value)
        if mode == SHORTHAND_CLASS:
            return value in node.class_name
        if mode == SHORTHAND_ATTR_EXISTS:
            return selector.attribute in ATTRIBUTE_ALIASES or selector.attribute in node.attributes
        if mode in (SHORTHAND_ATTR_EQUALS, SHORTHAND_ATTR_CONTAINS):
            actual = node.attribute(selector.attribute)
            if actual is None:
                return False
            return actual == value if mode == SHORTHAND_ATTR_EQUALS else value in actual
        return node.text == value or node.content_desc == value

    # Path queries

    @staticmethod
    def _match_step(node: UiNode, step: PathStep) -> bool:
        if step.name != '*' and step.name not in node.class_name:
            return False
        if step.predicate is None:
            return True
        return QueryEngine._match_path_predicate(node, step.predicate)

    @staticmethod
    def _match_path_predicate(node: UiNode, predicate: PathPredicate) -> bool:
        if not predicate.supported:
            return False
        if predicate.position is not None:
            # 1-based in the query, 0-based in the dump
            return node.index == str(predicate.position - 1)
        return node.attribute(predicate.attribute) == predicate.value

    @staticmethod
    def _evaluate_path(root: UiNode, selector: PathQuerySelector) -> List[UiNode]:
        first, rest = selector.steps[0], selector.steps[1:]
        if first.axis == AXIS_DESCENDANT:
            candidates = iter_preorder(root)
        else:
            candidates = iter(root.children)
        current = [node for node in candidates if QueryEngine._match_step(node, first)]

        for step in rest:
            found: Set[int] = set()
            matched: List[UiNode] = []
            for context in current:
                pool = context.iter_descendants() if step.axis == AXIS_DESCENDANT else iter(context.children)
                for node in pool:
                    if node.node_id not in found and QueryEngine._match_step(node, step):
                        found.add(node.node_id)
                        matched.append(node)
            current = matched

        # Node ids follow pre-order, so sorting restores document order
        return sorted(current, key=lambda n: n.node_id)

    @staticmethod
    def _evaluate_nodewise(root: UiNode, selector: BaseSelector) -> List[UiNode]:
        return [node for node in iter_preorder(root) if QueryEngine._matches_node(node, selector)]

    @staticmethod
    def _evaluate_alternatives(root: UiNode, selector: AlternativesSelector) -> List[UiNode]:
        for alternative in selector.alternatives:
            results = _EVALUATORS[alternative.kind](root, alternative)
            if results:
                return results
        return []


_EVALUATORS: Dict[SelectorKind, Callable[[UiNode, BaseSelector], List[UiNode]]] = {
    SelectorKind.PREDICATE: QueryEngine._evaluate_nodewise,
    SelectorKind.SHORTHAND: QueryEngine._evaluate_nodewise,
    SelectorKind.PATH_QUERY: QueryEngine._evaluate_path,
    SelectorKind.ALTERNATIVES: QueryEngine._evaluate_alternatives,
}
