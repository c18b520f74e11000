"""Workspace layout tree: binary splits over typed panes.

Trees are immutable. Every edit returns a new root that shares the
untouched subtrees with the old one. Nodes are addressed by id.

Limits: at most 2 nested horizontal splits (4 columns), 1 vertical split
(2 rows) on any root-to-leaf path, and 8 panes overall. Under these
limits deleting a pane only ever needs to collapse its parent split.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Union

from rich.tree import Tree

from groveui import config
from groveui.enums import PaneType, SplitDirection
from groveui.errors import LayoutError

MAX_HORIZONTAL_SPLITS = 2
MAX_VERTICAL_SPLITS = 1
MAX_PANES = 8

DEFAULT_PANE_TYPE = PaneType.SHELL
DEFAULT_LAYOUT_NAME = "New Layout"

PANE_LABELS = {
    PaneType.AGENT: "Agent",
    PaneType.GROVE: "Grove",
    PaneType.FILE_PICKER: "File Picker",
    PaneType.SHELL: "Shell",
    PaneType.CUSTOM: "Custom",
}


def new_id() -> str:
    return uuid.uuid4().hex[:7]


@dataclass(frozen=True)
class Pane:
    id: str
    pane_type: PaneType = DEFAULT_PANE_TYPE
    custom_command: str | None = None


@dataclass(frozen=True)
class Split:
    id: str
    direction: SplitDirection
    children: tuple[LayoutNode, LayoutNode]


LayoutNode = Union[Pane, Split]


@dataclass(frozen=True)
class CustomLayoutConfig:
    id: str
    name: str
    root: LayoutNode = field(default_factory=lambda: Pane(new_id()))

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "root": to_dict(self.root)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CustomLayoutConfig:
        return cls(
            id=str(data.get("id") or new_id()),
            name=data.get("name") or DEFAULT_LAYOUT_NAME,
            root=from_dict(data.get("root") or {}),
        )


def default_layout(make_id: Callable[[], str] = new_id) -> CustomLayoutConfig:
    return CustomLayoutConfig(make_id(), DEFAULT_LAYOUT_NAME, Pane(make_id()))


# -- queries --------------------------------------------------------------


def count_panes(node: LayoutNode) -> int:
    if isinstance(node, Pane):
        return 1
    return count_panes(node.children[0]) + count_panes(node.children[1])


def iter_panes(node: LayoutNode):
    if isinstance(node, Pane):
        yield node
    else:
        for child in node.children:
            yield from iter_panes(child)


def _path_to(node: LayoutNode, node_id: str) -> list[LayoutNode] | None:
    """Nodes from root down to node_id, inclusive. None if absent."""
    if node.id == node_id:
        return [node]
    if isinstance(node, Split):
        for child in node.children:
            path = _path_to(child, node_id)
            if path is not None:
                return [node, *path]
    return None


def find(root: LayoutNode, node_id: str) -> LayoutNode | None:
    path = _path_to(root, node_id)
    return path[-1] if path else None


def split_depths(root: LayoutNode, node_id: str) -> tuple[int, int]:
    """(horizontal, vertical) split ancestors of a node."""
    path = _path_to(root, node_id)
    if path is None:
        raise LayoutError(f"No node {node_id!r}")
    horizontal = vertical = 0
    for ancestor in path[:-1]:
        assert isinstance(ancestor, Split)
        if ancestor.direction == SplitDirection.HORIZONTAL:
            horizontal += 1
        else:
            vertical += 1
    return horizontal, vertical


def can_split(root: LayoutNode, pane_id: str, direction: SplitDirection) -> bool:
    node = find(root, pane_id)
    if not isinstance(node, Pane) or count_panes(root) >= MAX_PANES:
        return False
    horizontal, vertical = split_depths(root, pane_id)
    if direction == SplitDirection.HORIZONTAL:
        return horizontal < MAX_HORIZONTAL_SPLITS
    return vertical < MAX_VERTICAL_SPLITS


def can_delete(root: LayoutNode, pane_id: str) -> bool:
    path = _path_to(root, pane_id)
    if path is None or not isinstance(path[-1], Pane):
        return False
    # Root pane is the only pane; anything deeper has a sibling
    return len(path) > 1


# -- edits ----------------------------------------------------------------


def _rebuild(root: LayoutNode, node_id: str, new: LayoutNode) -> LayoutNode:
    """Copy the path from root to node_id, swapping in new at the end."""
    if root.id == node_id:
        return new
    if isinstance(root, Pane):
        return root
    first, second = root.children
    new_first = _rebuild(first, node_id, new)
    if new_first is not first:
        return replace(root, children=(new_first, second))
    new_second = _rebuild(second, node_id, new)
    if new_second is not second:
        return replace(root, children=(first, new_second))
    return root


def split(
    root: LayoutNode,
    pane_id: str,
    direction: SplitDirection,
    make_id: Callable[[], str] = new_id,
) -> LayoutNode:
    """Replace a pane with a split of (the pane re-keyed, a fresh shell pane)."""
    if not can_split(root, pane_id, direction):
        raise LayoutError(f"Cannot split {pane_id!r} {direction}")
    pane = find(root, pane_id)
    assert isinstance(pane, Pane)
    node = Split(
        id=make_id(),
        direction=direction,
        children=(replace(pane, id=make_id()), Pane(make_id())),
    )
    return _rebuild(root, pane_id, node)


def delete(root: LayoutNode, pane_id: str) -> LayoutNode:
    """Remove a pane; its parent split is replaced by the surviving sibling."""
    if not can_delete(root, pane_id):
        raise LayoutError(f"Cannot delete {pane_id!r}")
    path = _path_to(root, pane_id)
    assert path is not None
    parent = path[-2]
    assert isinstance(parent, Split)
    first, second = parent.children
    survivor = second if first.id == pane_id else first
    return _rebuild(root, parent.id, survivor)


def set_pane_type(root: LayoutNode, pane_id: str, pane_type: PaneType) -> LayoutNode:
    pane = find(root, pane_id)
    if not isinstance(pane, Pane):
        raise LayoutError(f"No pane {pane_id!r}")
    command = pane.custom_command if pane_type == PaneType.CUSTOM else None
    return _rebuild(root, pane_id, replace(pane, pane_type=pane_type, custom_command=command))


def set_custom_command(root: LayoutNode, pane_id: str, command: str) -> LayoutNode:
    pane = find(root, pane_id)
    if not isinstance(pane, Pane):
        raise LayoutError(f"No pane {pane_id!r}")
    return _rebuild(root, pane_id, replace(pane, custom_command=command))


# -- serialization --------------------------------------------------------


def to_dict(node: LayoutNode) -> dict[str, Any]:
    if isinstance(node, Pane):
        data: dict[str, Any] = {"id": node.id, "type": "pane", "paneType": str(node.pane_type)}
        if node.custom_command is not None:
            data["customCommand"] = node.custom_command
        return data
    return {
        "id": node.id,
        "type": "split",
        "direction": str(node.direction),
        "children": [to_dict(node.children[0]), to_dict(node.children[1])],
    }


def from_dict(data: dict[str, Any]) -> LayoutNode:
    node_id = str(data.get("id") or new_id())
    if data.get("type") == "split":
        children = data.get("children") or []
        if len(children) != 2:
            raise LayoutError(f"Split {node_id!r} needs exactly two children")
        try:
            direction = SplitDirection(data.get("direction") or "horizontal")
        except ValueError as e:
            raise LayoutError(f"Bad direction on {node_id!r}") from e
        return Split(node_id, direction, (from_dict(children[0]), from_dict(children[1])))
    try:
        pane_type = PaneType(data.get("paneType") or DEFAULT_PANE_TYPE)
    except ValueError:
        pane_type = DEFAULT_PANE_TYPE
    return Pane(node_id, pane_type, data.get("customCommand"))


def load_layouts(cfg: dict[str, Any] | None = None) -> list[CustomLayoutConfig]:
    """Saved layouts from config. Nothing saved yields one default layout."""
    raw = (config.CONFIG if cfg is None else cfg).get("layouts")
    if not isinstance(raw, list) or not raw:
        return [default_layout()]
    return [CustomLayoutConfig.from_dict(item) for item in raw if isinstance(item, dict)]


def save_layouts(layouts: list[CustomLayoutConfig], *, persist: bool = True) -> None:
    config.CONFIG["layouts"] = [layout.to_dict() for layout in layouts]
    if persist:
        config.save()


def render(layout: CustomLayoutConfig, selected: str | None = None) -> Tree:
    """Rich tree view of a layout. The pane with id selected is highlighted."""
    tree = Tree(f"[bold]{layout.name}[/] ({count_panes(layout.root)} panes)")

    def add(parent: Tree, node: LayoutNode) -> None:
        if isinstance(node, Pane):
            label = PANE_LABELS[node.pane_type]
            if node.custom_command:
                label += f": {node.custom_command}"
            parent.add(label, style="reverse" if node.id == selected else None)
        else:
            branch = parent.add(f"[dim]{node.direction} split[/]")
            for child in node.children:
                add(branch, child)

    add(tree, layout.root)
    return tree


class LayoutEditor:
    """Working copy of the saved layouts, edited one pane at a time.

    Edits stay local until save(). There is always at least one layout,
    and the selected pane always exists in the current layout.
    """

    def __init__(
        self,
        layouts: list[CustomLayoutConfig],
        make_id: Callable[[], str] = new_id,
    ) -> None:
        self.make_id = make_id
        self.layouts = list(layouts) or [default_layout(make_id)]
        self.index = 0
        self.pane_id = self.panes[0].id
        self.dirty = False

    @property
    def current(self) -> CustomLayoutConfig:
        return self.layouts[self.index]

    @property
    def panes(self) -> list[Pane]:
        return list(iter_panes(self.current.root))

    @property
    def selected_pane(self) -> Pane:
        pane = find(self.current.root, self.pane_id)
        assert isinstance(pane, Pane)
        return pane

    def _update(self, **changes: Any) -> None:
        self.layouts[self.index] = replace(self.current, **changes)
        self.dirty = True

    # -- navigation -------------------------------------------------------

    def select_layout(self, step: int) -> None:
        self.index = (self.index + step) % len(self.layouts)
        self.pane_id = self.panes[0].id

    def select_pane(self, step: int) -> None:
        ids = [p.id for p in self.panes]
        self.pane_id = ids[(ids.index(self.pane_id) + step) % len(ids)]

    # -- pane edits -------------------------------------------------------

    def can_split(self, direction: SplitDirection) -> bool:
        return can_split(self.current.root, self.pane_id, direction)

    def can_delete(self) -> bool:
        return can_delete(self.current.root, self.pane_id)

    def split(self, direction: SplitDirection) -> None:
        """Split the selected pane and select the new one."""
        before = {p.id for p in self.panes}
        self._update(root=split(self.current.root, self.pane_id, direction, self.make_id))
        # The fresh pane comes after the re-keyed original
        self.pane_id = [p.id for p in self.panes if p.id not in before][-1]

    def delete(self) -> None:
        """Delete the selected pane and select its neighbour."""
        ids = [p.id for p in self.panes]
        position = ids.index(self.pane_id)
        self._update(root=delete(self.current.root, self.pane_id))
        ids = [p.id for p in self.panes]
        self.pane_id = ids[min(position, len(ids) - 1)]

    def cycle_type(self) -> PaneType:
        types = list(PaneType)
        pane_type = types[(types.index(self.selected_pane.pane_type) + 1) % len(types)]
        self._update(root=set_pane_type(self.current.root, self.pane_id, pane_type))
        return pane_type

    def set_command(self, command: str) -> None:
        """Make the selected pane a custom pane running command."""
        root = set_pane_type(self.current.root, self.pane_id, PaneType.CUSTOM)
        self._update(root=set_custom_command(root, self.pane_id, command.strip()))

    # -- layout edits -----------------------------------------------------

    def add_layout(self) -> None:
        self.layouts.append(default_layout(self.make_id))
        self.dirty = True
        self.select_layout(len(self.layouts) - 1 - self.index)

    def remove_layout(self) -> bool:
        """Drop the current layout. The last one cannot be removed."""
        if len(self.layouts) <= 1:
            return False
        del self.layouts[self.index]
        self.dirty = True
        self.select_layout(-1 if self.index >= len(self.layouts) else 0)
        return True

    def rename(self, name: str) -> bool:
        name = name.strip()
        if not name:
            return False
        self._update(name=name)
        return True

    def save(self, *, persist: bool = True) -> None:
        save_layouts(self.layouts, persist=persist)
        self.dirty = False
