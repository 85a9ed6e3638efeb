"""
Tri-state selection over servers and their databases.

Setting a node cascades the state to every descendant; changing a child
recomputes its parent (and so on upward) as YES when all children are YES,
NO when all are NO, and MIXED otherwise. Parent and child links are
explicit, there is no event subscription.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Iterator, List, Optional, Sequence

from bulkquery.targets.discovery import ServerDatabases
from bulkquery.targets.models import Target


class CheckState(str, Enum):
    YES = "yes"
    NO = "no"
    MIXED = "mixed"


class SelectionNode:
    def __init__(self, name: str, value: Any = None, state: CheckState = CheckState.NO):
        self.name = name
        self.value = value
        self.state = state
        self.parent: Optional[SelectionNode] = None
        self.children: List[SelectionNode] = []

    def __repr__(self):
        return f"SelectionNode({self.name!r}, {self.state.value})"

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def add_child(self, child: "SelectionNode") -> "SelectionNode":
        child.parent = self
        self.children.append(child)
        self.recompute()
        return child

    def set_state(self, state: CheckState) -> None:
        if state is CheckState.MIXED:
            raise ValueError("MIXED is derived from the children and cannot be set directly")
        self._cascade(state)
        if self.parent is not None:
            self.parent.recompute()

    def _cascade(self, state: CheckState) -> None:
        self.state = state
        for child in self.children:
            child._cascade(state)

    def recompute(self) -> None:
        if self.children:
            states = {child.state for child in self.children}
            if states == {CheckState.YES}:
                self.state = CheckState.YES
            elif states == {CheckState.NO}:
                self.state = CheckState.NO
            else:
                self.state = CheckState.MIXED
        if self.parent is not None:
            self.parent.recompute()

    def leaves(self) -> Iterator["SelectionNode"]:
        if self.is_leaf:
            yield self
            return
        for child in self.children:
            yield from child.leaves()

    def find(self, name: str) -> Optional["SelectionNode"]:
        for child in self.children:
            if child.name == name:
                return child
        return None


def build_selection_tree(discovered: Sequence[ServerDatabases]) -> List[SelectionNode]:
    """One node per server, sorted by display name, with a leaf per database.

    Leaves start checked when the database is in the server's persisted
    selection. Unreachable servers get a childless node marked as such.
    """
    roots: List[SelectionNode] = []
    for entry in sorted(discovered, key=lambda e: e.server.display_name):
        server = entry.server
        if not entry.connected:
            roots.append(SelectionNode(f"{server.display_name} (Connection Failed)", server))
            continue

        node = SelectionNode(server.display_name, server)
        selected = set(server.selected_databases)
        for database in entry.databases:
            state = CheckState.YES if database in selected else CheckState.NO
            node.add_child(SelectionNode(database, server.target(database), state))
        roots.append(node)
    return roots


def selected_targets(roots: Sequence[SelectionNode]) -> List[Target]:
    """Targets of every checked leaf, in tree order."""
    return [
        leaf.value
        for root in roots
        for leaf in root.leaves()
        if leaf.state is CheckState.YES and isinstance(leaf.value, Target)
    ]
