"""The rendered page the scanner reads and masks.

A minimal DOM: a :class:`Document` owns a ``body`` :class:`Element`;
elements hold child elements and :class:`TextNode` leaves.  Hosts build the
tree (see :mod:`screenguard.html_loader`) and mutate it; every mutation of
an attached node is reported to the document's observers, the same way a
mutation observer reports DOM changes.

Nodes compare and hash by identity and support weak references, so
registries can track them without keeping detached nodes alive.
"""

from __future__ import annotations
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Literal


@dataclass(frozen=True, slots=True)
class MutationRecord:
    """One change to the attached tree."""
    kind: Literal["child_list", "character_data"]
    target: Node
    added: tuple[Node, ...] = field(default_factory=tuple)


MutationCallback = Callable[[list[MutationRecord]], None]


class Node:
    """Base class for tree nodes."""

    def __init__(self) -> None:
        self.parent: Element | None = None

    @property
    def document(self) -> Document | None:
        """The document this node is attached to, if any."""
        node: Node = self
        while node.parent is not None:
            node = node.parent
        return node.owner if isinstance(node, Element) else None

    def detach(self) -> None:
        """Remove this node from its parent (no-op when already detached)."""
        if self.parent is not None:
            self.parent.remove_child(self)

    def _notify(self, record: MutationRecord) -> None:
        doc = self.document
        if doc is not None:
            doc._record(record)


class TextNode(Node):
    """A run of text inside an element."""

    def __init__(self, text: str = "") -> None:
        super().__init__()
        self._text = text

    @property
    def text(self) -> str:
        return self._text

    @text.setter
    def text(self, value: str) -> None:
        if value == self._text:
            return
        self._text = value
        self._notify(MutationRecord("character_data", self))

    def __repr__(self) -> str:
        preview = self._text if len(self._text) <= 24 else self._text[:21] + "..."
        return f"TextNode({preview!r})"


class Element(Node):
    """A container node with a tag, classes, inline style and data attributes."""

    def __init__(
        self,
        tag: str,
        *,
        classes: Iterable[str] = (),
        style: dict[str, str] | None = None,
        dataset: dict[str, str] | None = None,
        attrs: dict[str, str] | None = None,
        children: Iterable[Node] = (),
    ) -> None:
        super().__init__()
        self.tag = tag.lower()
        self.classes: set[str] = set(classes)
        self.style: dict[str, str] = dict(style or {})
        self.dataset: dict[str, str] = dict(dataset or {})
        self.attrs: dict[str, str] = dict(attrs or {})
        self.children: list[Node] = []
        # Set only on a document's body
        self.owner: Document | None = None
        for child in children:
            self.append(child)

    # -- mutation -----------------------------------------------------------

    def append(self, child: Node) -> Node:
        return self.insert(len(self.children), child)

    def insert(self, index: int, child: Node) -> Node:
        if child is self or (isinstance(child, Element) and self._has_ancestor(child)):
            raise ValueError("cannot insert a node into its own subtree")
        child.detach()
        self.children.insert(index, child)
        child.parent = self
        self._notify(MutationRecord("child_list", self, added=(child,)))
        return child

    def remove_child(self, child: Node) -> None:
        self.children.remove(child)
        # Notify while still attached, then cut the link
        self._notify(MutationRecord("child_list", self))
        child.parent = None

    def append_text(self, text: str) -> TextNode:
        node = TextNode(text)
        self.append(node)
        return node

    def _has_ancestor(self, candidate: Element) -> bool:
        node = self.parent
        while node is not None:
            if node is candidate:
                return True
            node = node.parent
        return False

    # -- traversal ----------------------------------------------------------

    def iter(self) -> Iterator[Node]:
        """Depth-first pre-order walk of the subtree (self excluded)."""
        for child in self.children:
            yield child
            if isinstance(child, Element):
                yield from child.iter()

    @property
    def text_content(self) -> str:
        return "".join(n.text for n in self.iter() if isinstance(n, TextNode))

    def __repr__(self) -> str:
        return f"Element({self.tag!r}, children={len(self.children)})"


class Document:
    """Root of a content tree plus its mutation observers."""

    def __init__(self, body: Element | None = None) -> None:
        self.body = body or Element("body")
        self.body.owner = self
        self.version = 0
        self._observers: list[MutationCallback] = []

    def observe(self, callback: MutationCallback) -> Callable[[], None]:
        """Register a mutation callback.  Returns an unsubscribe function."""
        self._observers.append(callback)

        def unobserve() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unobserve

    def contains(self, node: Node) -> bool:
        return node.document is self

    def text_nodes(self) -> Iterator[TextNode]:
        return (n for n in self.body.iter() if isinstance(n, TextNode))

    def _record(self, record: MutationRecord) -> None:
        self.version += 1
        for callback in list(self._observers):
            callback([record])
