"""Shape-tolerant tree used for every parsed document.

Parsed markup and JSON are normalized into three node kinds:

    Leaf(value)        scalar value (str, int, float, bool or None)
    ListNode(items)    ordered sequence of nodes
    MapNode(fields)    string-keyed mapping of nodes

XML attributes are stored under keys prefixed with ``@`` and element text
under ``#text``. Tags listed as "always plural" at parse time are stored as a
``ListNode`` even when only one instance is present, so callers iterate with
``children()`` and never branch on singular-vs-array.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple, Union

ATTR_PREFIX = "@"
TEXT_KEY = "#text"


@dataclass(frozen=True)
class Leaf:
    value: Any = None


@dataclass(frozen=True)
class ListNode:
    items: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class MapNode:
    fields: Dict[str, "Node"] = field(default_factory=dict)

    def keys(self) -> Iterable[str]:
        return self.fields.keys()


Node = Union[Leaf, ListNode, MapNode]


def child(node: Optional[Node], key: str) -> Optional[Node]:
    """Return the child stored under ``key``; lists yield their first map hit."""
    stack: List[Node] = [node] if node is not None else []
    while stack:
        current = stack.pop()
        if isinstance(current, MapNode):
            found = current.fields.get(key)
            if found is not None:
                return found
        elif isinstance(current, ListNode):
            stack.extend(reversed(current.items))
    return None


def children(node: Optional[Node], key: Optional[str] = None) -> List[Node]:
    """Return the nodes under ``key`` as a list, whatever their cardinality."""
    target = child(node, key) if key is not None else node
    if target is None:
        return []
    if isinstance(target, ListNode):
        return list(target.items)
    return [target]


def first(node: Optional[Node], key: str) -> Optional[Node]:
    values = children(node, key)
    return values[0] if values else None


def has(node: Optional[Node], key: str) -> bool:
    return child(node, key) is not None


def attr(node: Optional[Node], name: str) -> Optional[str]:
    value = child(node, f"{ATTR_PREFIX}{name}")
    if isinstance(value, Leaf) and value.value is not None:
        return str(value.value)
    return None


def text(node: Optional[Node]) -> str:
    """Concatenated direct text of a node (``#text`` for elements)."""
    parts: List[str] = []
    stack: List[Node] = [node] if node is not None else []
    while stack:
        current = stack.pop()
        if isinstance(current, Leaf):
            if current.value is not None and str(current.value):
                parts.append(str(current.value))
        elif isinstance(current, MapNode):
            value = current.fields.get(TEXT_KEY)
            if value is not None:
                stack.append(value)
        else:
            stack.extend(reversed(current.items))
    return " ".join(parts)


def walk(node: Optional[Node]) -> Iterator[Tuple[Optional[str], Node]]:
    """Depth-first iteration yielding ``(key, node)`` pairs; the root has key None."""
    stack: List[Tuple[Optional[str], Node]] = [(None, node)] if node is not None else []
    while stack:
        key, current = stack.pop()
        yield key, current
        if isinstance(current, MapNode):
            for child_key, value in reversed(list(current.fields.items())):
                stack.append((child_key, value))
        elif isinstance(current, ListNode):
            for item in reversed(current.items):
                stack.append((key, item))


def iter_keys(node: Optional[Node]) -> Iterator[str]:
    for key, _ in walk(node):
        if key is not None:
            yield key


def iter_leaf_strings(node: Optional[Node]) -> Iterator[str]:
    for _, current in walk(node):
        if isinstance(current, Leaf) and isinstance(current.value, str):
            yield current.value


def find_all(node: Optional[Node], key: str) -> List[Node]:
    """All nodes stored under ``key`` anywhere in the subtree, list items flattened."""
    found: List[Node] = []
    for current_key, current in walk(node):
        if current_key == key and not isinstance(current, ListNode):
            found.append(current)
    return found


def to_plain(node: Optional[Node]) -> Any:
    if node is None:
        return None
    results: List[Any] = []
    stack: List[Tuple[Node, bool]] = [(node, False)]
    while stack:
        current, expanded = stack.pop()
        if isinstance(current, Leaf):
            results.append(current.value)
            continue
        members = current.items if isinstance(current, ListNode) else tuple(current.fields.values())
        if not expanded:
            stack.append((current, True))
            stack.extend((member, False) for member in reversed(members))
            continue
        values = _take(results, len(members))
        if isinstance(current, ListNode):
            results.append(values)
        else:
            results.append(dict(zip(current.fields.keys(), values)))
    return results[0]


def from_plain(value: Any, always_plural: FrozenSet[str] = frozenset()) -> Node:
    """Build a node tree from decoded JSON-like data.

    Containers are assembled bottom-up from an explicit stack, so nesting
    depth is bounded by memory rather than the interpreter's recursion limit.
    """
    results: List[Node] = []
    stack: List[Tuple[Any, bool]] = [(value, False)]
    while stack:
        current, expanded = stack.pop()
        if isinstance(current, dict):
            members = list(current.values())
        elif isinstance(current, (list, tuple)):
            members = list(current)
        else:
            results.append(Leaf(current))
            continue
        if not expanded:
            stack.append((current, True))
            stack.extend((member, False) for member in reversed(members))
            continue
        converted = _take(results, len(members))
        if isinstance(current, dict):
            fields: Dict[str, Node] = {}
            for key, item in zip(current.keys(), converted):
                key = str(key)
                if key in always_plural and not isinstance(item, ListNode):
                    item = ListNode((item,))
                fields[key] = item
            results.append(MapNode(fields))
        else:
            results.append(ListNode(tuple(converted)))
    return results[0]


def _take(results: List[Any], count: int) -> List[Any]:
    start = len(results) - count
    taken = results[start:]
    del results[start:]
    return taken
