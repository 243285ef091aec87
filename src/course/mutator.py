"""
内容树变更器

apply(tree, modifications) -> newTree，纯函数，不修改输入快照。
ADD 会为缺失的祖先路径段补建占位节点；UPDATE/DELETE 找不到目标时为空操作。
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, List, Optional, Tuple

from .records import Action, DEFAULT_SLIDE_KIND, Modification
from .tree import ContentNode, ContentTree, NodeType, join_path, split_path, type_for_depth

logger = logging.getLogger(__name__)

Nodes = Tuple[ContentNode, ...]


@dataclass
class MutationReport:
    """一次批量变更的结果统计"""
    added: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    synthesized: List[str] = field(default_factory=list)
    skipped: List[Tuple[Tuple[str, str, str], str]] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated or self.deleted)


def placeholder_title(node_type: NodeType, segment: str) -> str:
    return f"{node_type.value} {segment}"


class TreeMutator:
    """把一批 Modification 应用到内容树快照上"""

    def apply(self, tree: ContentTree, modifications: Iterable[Modification]) -> ContentTree:
        return self.apply_with_report(tree, modifications)[0]

    def apply_with_report(
        self,
        tree: ContentTree,
        modifications: Iterable[Modification]
    ) -> Tuple[ContentTree, MutationReport]:
        report = MutationReport()
        for mod in modifications:
            if mod.action is Action.ADD:
                tree = self._add(tree, mod, report)
            elif mod.action is Action.UPDATE:
                tree = self._update(tree, mod, report)
            else:
                tree = self._delete(tree, mod, report)
        return tree, report

    # --- ADD ---

    def _add(self, tree: ContentTree, mod: Modification, report: MutationReport) -> ContentTree:
        if mod.target_type is NodeType.COURSE:
            segments: List[str] = []
        else:
            segments = split_path(mod.parent_path)
            if not segments:
                self._skip(report, mod, "missing parentPath")
                return tree

        if type_for_depth(len(segments)) is not mod.target_type:
            self._skip(report, mod, f"parentPath depth does not fit {mod.target_type.value}")
            return tree

        courses = self._add_under(tree.courses, segments, "", 0, mod, report)
        return replace(tree, courses=courses)

    def _add_under(self, siblings: Nodes, remaining: List[str], parent_path: str,
                   depth: int, mod: Modification, report: MutationReport) -> Nodes:
        if not remaining:
            return self._place(siblings, parent_path, mod, report)

        segment = remaining[0]
        path = join_path(parent_path, segment)
        index = next((i for i, n in enumerate(siblings) if n.id == segment), None)
        if index is None:
            node_type = type_for_depth(depth)
            siblings = siblings + (ContentNode(
                id=segment,
                name=placeholder_title(node_type, segment),
                type=node_type,
                path=path,
                placeholder=True,
            ),)
            index = len(siblings) - 1
            report.synthesized.append(path)
            logger.debug(f"🧩 补建占位节点: {path}")

        node = siblings[index]
        children = self._add_under(node.children, remaining[1:], path, depth + 1, mod, report)
        return siblings[:index] + (node.with_children(children),) + siblings[index + 1:]

    def _place(self, siblings: Nodes, parent_path: str, mod: Modification,
               report: MutationReport) -> Nodes:
        path = join_path(parent_path, mod.node_id)
        attributes = {k: v for k, v in mod.fields.items() if k != "name"}
        if mod.target_type is NodeType.SLIDE:
            attributes.setdefault("slide_type", DEFAULT_SLIDE_KIND)

        for index, existing in enumerate(siblings):
            if existing.id != mod.node_id:
                continue
            if not existing.placeholder:
                # 重复 ADD：按 id 命中即跳过
                self._skip(report, mod, "duplicate ADD")
                return siblings
            filled = replace(
                existing,
                name=mod.name or existing.name,
                attributes={**existing.attributes, **attributes},
                placeholder=False,
            )
            report.added.append(path)
            return siblings[:index] + (filled,) + siblings[index + 1:]

        node = ContentNode(
            id=mod.node_id,
            name=mod.name or mod.node_id,
            type=mod.target_type,
            path=path,
            attributes=attributes,
        )
        report.added.append(path)
        if node.is_video:
            position = len(siblings)
            for index, sibling in enumerate(siblings):
                if sibling.is_video:
                    position = index + 1
            return siblings[:position] + (node,) + siblings[position:]
        return siblings + (node,)

    # --- UPDATE / DELETE ---

    def _locate(self, tree: ContentTree, mod: Modification) -> Optional[ContentNode]:
        if mod.path:
            node = tree.find_by_path(mod.path)
            if node is not None and node.type is mod.target_type:
                return node
        node = tree.find_by_id(mod.node_id, mod.target_type, within=mod.parent_path)
        if node is None and mod.id_from_name and mod.name:
            node = tree.find_by_name(mod.name, mod.target_type, within=mod.parent_path)
        return node

    def _update(self, tree: ContentTree, mod: Modification, report: MutationReport) -> ContentTree:
        target = self._locate(tree, mod)
        if target is None:
            self._skip(report, mod, "UPDATE target not found")
            return tree

        fields = mod.fields
        name = fields.pop("name", None)

        def merge(node: ContentNode) -> ContentNode:
            return replace(
                node,
                name=name or node.name,
                attributes={**node.attributes, **fields},
                placeholder=node.placeholder and not name,
            )

        report.updated.append(target.path)
        return replace(tree, courses=self._map_at(tree.courses, split_path(target.path), merge))

    def _delete(self, tree: ContentTree, mod: Modification, report: MutationReport) -> ContentTree:
        target = self._locate(tree, mod)
        if target is None:
            self._skip(report, mod, "DELETE target not found")
            return tree
        report.deleted.append(target.path)
        return replace(tree, courses=self._map_at(tree.courses, split_path(target.path), lambda _: None))

    def _map_at(self, siblings: Nodes, segments: List[str],
                fn: Callable[[ContentNode], Optional[ContentNode]]) -> Nodes:
        """沿路径重建，fn 返回 None 表示删除该子树"""
        result = []
        for node in siblings:
            if node.id != segments[0]:
                result.append(node)
            elif len(segments) == 1:
                mapped = fn(node)
                if mapped is not None:
                    result.append(mapped)
            else:
                result.append(node.with_children(self._map_at(node.children, segments[1:], fn)))
        return tuple(result)

    def _skip(self, report: MutationReport, mod: Modification, reason: str):
        report.skipped.append((mod.identity, reason))
        if reason == "duplicate ADD":
            logger.debug(f"↩️ 跳过重复节点: {mod.identity}")
        else:
            logger.warning(f"⚠️ 无法应用编辑 {mod.identity}: {reason}")
