"""
Reachability & Cycle Validator - Static analysis of the scene graph.

Edges come from every way a scene can lead to another:
- simple choice targets
- both branch targets of attemptable choices
- goto effects (scene entry, choice, branch), when follow_goto_effects is on

Conditions are ignored: a scene is reachable if *some* path of links leads
to it from the starting scene. Cycles are reported for information only;
hub-and-spoke content loops on purpose.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from collections import deque

from .scene_dsl import AttemptableRoute, Manifest, SceneData, goto_targets


DEFAULT_MAX_DEPTH = 1000


class UnreachableReason(Enum):
    NO_INCOMING_LINKS = "no-incoming-links"
    BEHIND_UNSATISFIED_CONDITION = "behind-unsatisfied-condition"


@dataclass
class UnreachableScene:
    scene_id: str
    reason: UnreachableReason
    from_scenes: list[str] = field(default_factory=list)


@dataclass
class ReachabilityResult:
    """Outcome of a reachability pass."""
    total_scenes: int
    reachable: set[str]
    unreachable: list[UnreachableScene]
    cycles: dict[str, int] = field(default_factory=dict)

    @property
    def reachable_scenes(self) -> int:
        return len(self.reachable)

    @property
    def valid(self) -> bool:
        return bool(self.reachable) and not self.unreachable


class ReachabilityValidator:
    """
    Usage:
        validator = ReachabilityValidator()
        result = validator.analyze(manifest, scenes)
        for scene in result.unreachable:
            print(scene.scene_id, scene.reason.value)
    """

    def analyze(
        self,
        manifest: Manifest,
        scenes: dict[str, SceneData],
        max_depth: int = DEFAULT_MAX_DEPTH,
        follow_goto_effects: bool = True,
    ) -> ReachabilityResult:
        all_ids = list(manifest.scene_index.keys())
        if not manifest.starting_scene:
            return ReachabilityResult(total_scenes=len(all_ids), reachable=set(), unreachable=[])

        reachable = self.find_reachable(manifest.starting_scene, scenes, max_depth, follow_goto_effects)

        unreachable = []
        for scene_id in all_ids:
            if scene_id in reachable:
                continue
            sources = self.incoming_links(scene_id, scenes, follow_goto_effects)
            if sources:
                reason = UnreachableReason.BEHIND_UNSATISFIED_CONDITION
            else:
                reason = UnreachableReason.NO_INCOMING_LINKS
            unreachable.append(UnreachableScene(scene_id=scene_id, reason=reason, from_scenes=sources))

        return ReachabilityResult(
            total_scenes=len(all_ids),
            reachable=reachable,
            unreachable=unreachable,
            cycles=self.detect_cycles(manifest, scenes),
        )

    def find_reachable(
        self,
        start: str,
        scenes: dict[str, SceneData],
        max_depth: int = DEFAULT_MAX_DEPTH,
        follow_goto_effects: bool = True,
    ) -> set[str]:
        """Breadth-first walk from `start`, bounded by `max_depth` hops."""
        reachable: set[str] = set()
        depths = {start: 0}
        queue = deque([(start, 0)])

        while queue:
            scene_id, depth = queue.popleft()
            if depth >= max_depth:
                continue
            reachable.add(scene_id)
            for neighbor in self.neighbors(scene_id, scenes, follow_goto_effects):
                if neighbor not in depths or depth + 1 < depths[neighbor]:
                    depths[neighbor] = depth + 1
                    queue.append((neighbor, depth + 1))

        return reachable

    def neighbors(
        self,
        scene_id: str,
        scenes: dict[str, SceneData],
        follow_goto_effects: bool = True,
    ) -> list[str]:
        """Outgoing targets of a scene, de-duplicated, in authored order."""
        scene = scenes.get(scene_id)
        if scene is None:
            return []

        targets: list[str] = []
        for choice in scene.choices:
            if isinstance(choice.route, AttemptableRoute):
                targets += [choice.route.on_success.to, choice.route.on_failure.to]
            else:
                targets.append(choice.route.to)
            if follow_goto_effects:
                targets += goto_targets(choice.all_effects())
        if follow_goto_effects:
            targets += goto_targets(scene.effects)

        return list(dict.fromkeys(t for t in targets if t))

    def incoming_links(
        self,
        scene_id: str,
        scenes: dict[str, SceneData],
        follow_goto_effects: bool = True,
    ) -> list[str]:
        return [
            other_id
            for other_id in scenes
            if other_id != scene_id
            and scene_id in self.neighbors(other_id, scenes, follow_goto_effects)
        ]

    def detect_cycles(self, manifest: Manifest, scenes: dict[str, SceneData]) -> dict[str, int]:
        """
        Map each scene on a cycle to the length of the shortest cycle through it.

        Three-color DFS (white/gray/black) finds the DFS trees holding a back
        edge; every cycle lies inside one such tree. Members of those trees get
        an exact shortest-return BFS, so cycles closed through cross edges
        are measured too.
        """
        WHITE, GRAY, BLACK = 0, 1, 2
        all_ids = list(dict.fromkeys(list(manifest.scene_index) + list(scenes)))
        color = {scene_id: WHITE for scene_id in all_ids}
        cycles: dict[str, int] = {}

        for root in all_ids:
            if color[root] != WHITE:
                continue
            tree: list[str] = [root]
            path: list[str] = [root]
            has_back_edge = False
            color[root] = GRAY
            stack = [iter(self.neighbors(root, scenes))]

            while stack:
                neighbor = next(stack[-1], None)
                if neighbor is None:
                    stack.pop()
                    color[path.pop()] = BLACK
                    continue
                state = color.get(neighbor)
                if state == GRAY:
                    has_back_edge = True
                elif state == WHITE:
                    color[neighbor] = GRAY
                    path.append(neighbor)
                    tree.append(neighbor)
                    stack.append(iter(self.neighbors(neighbor, scenes)))

            if not has_back_edge:
                continue
            for scene_id in tree:
                length = self._shortest_cycle(scene_id, scenes, color)
                if length is not None:
                    cycles[scene_id] = length

        return cycles

    def _shortest_cycle(
        self, start: str, scenes: dict[str, SceneData], known: dict[str, int]
    ) -> int | None:
        """Length of the shortest path leading from start back to itself."""
        seen: set[str] = set()
        queue = deque((neighbor, 1) for neighbor in self.neighbors(start, scenes))
        while queue:
            scene_id, length = queue.popleft()
            if scene_id == start:
                return length
            if scene_id in seen or scene_id not in known:
                continue
            seen.add(scene_id)
            queue.extend((n, length + 1) for n in self.neighbors(scene_id, scenes))
        return None


def analyze_reachability(
    manifest: Manifest,
    scenes: dict[str, SceneData],
    max_depth: int = DEFAULT_MAX_DEPTH,
    follow_goto_effects: bool = True,
) -> ReachabilityResult:
    """Convenience wrapper around ReachabilityValidator.analyze."""
    return ReachabilityValidator().analyze(manifest, scenes, max_depth, follow_goto_effects)
