"""Keeps description markers in step with relationship edges.

After every edge or metadata change the markers of each affected task are
rewritten, including the other endpoint of bidirectional kinds:

    set_parent(C, P)     C gains ^P, P gains -^C
    add_blocker(A, B)    A gains !B, B gains -!A
    add_related(A, B)    A gains ~B, B gains ~A

Every rewrite is recorded into the operation's open batch, so it is undone
together with the edge change. Rewrites only happen when the parsed field
actually differs, which leaves user-written text untouched when it already
agrees with the edges.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from todograph.adapters.sqlite.task_repository import SqliteTaskRepository
from todograph.models.commands import SyncDescriptionCommand
from todograph.parsing.metadata_codec import ParsedDescription, parse, with_markers
from todograph.services.command_log import CommandLog

if TYPE_CHECKING:
    from todograph.services.graph_service import RelationshipGraph

logger = logging.getLogger(__name__)


class SyncCoordinator:
    """Rewrites marker text after relationship and metadata mutations."""

    def __init__(self, tasks: SqliteTaskRepository, command_log: CommandLog):
        self.tasks = tasks
        self.command_log = command_log

    def rewrite(self, task_id: str, **changes) -> bool:
        """Replace marker fields on one task's description.

        Returns:
            True if the description changed
        """
        task = self.tasks.get(task_id)
        if task is None:
            return False
        new_description = with_markers(task.description, **changes)
        if new_description == task.description:
            return False
        self.tasks.set_description(task_id, new_description)
        self.command_log.record(
            SyncDescriptionCommand(
                task_id=task_id,
                old_description=task.description,
                new_description=new_description,
            )
        )
        logger.debug("rewrote markers on %s: %s", task_id, sorted(changes))
        return True

    def _toggle_reference(self, task_id: str, field: str, ref_id: str, present: bool) -> bool:
        task = self.tasks.get(task_id)
        if task is None:
            return False
        ids = list(getattr(parse(task.description), field))
        if present and ref_id not in ids:
            ids.append(ref_id)
        elif not present and ref_id in ids:
            ids.remove(ref_id)
        else:
            return False
        return self.rewrite(task_id, **{field: ids})

    # ------------------------------------------------------------------
    # Edge changes
    # ------------------------------------------------------------------

    def parent_changed(
        self, child_id: str, old_parent_id: str | None, new_parent_id: str | None
    ) -> None:
        child = self.tasks.get(child_id)
        if child is not None:
            marker = parse(child.description).parent_id
            # On unset, a marker naming some other task is left to the user
            if new_parent_id and marker != new_parent_id:
                self.rewrite(child_id, parent_id=new_parent_id)
            elif not new_parent_id and marker and marker == old_parent_id:
                self.rewrite(child_id, parent_id=None)
        if old_parent_id:
            self._toggle_reference(old_parent_id, "inverse_parent_ids", child_id, False)
        if new_parent_id:
            self._toggle_reference(new_parent_id, "inverse_parent_ids", child_id, True)

    def blocker_changed(self, blocker_id: str, blocked_id: str, present: bool) -> None:
        self._toggle_reference(blocker_id, "blocks_ids", blocked_id, present)
        self._toggle_reference(blocked_id, "inverse_blocked_by_ids", blocker_id, present)

    def related_changed(self, first_id: str, second_id: str, present: bool) -> None:
        self._toggle_reference(first_id, "related_ids", second_id, present)
        self._toggle_reference(second_id, "related_ids", first_id, present)

    def metadata_changed(self, task_id: str) -> None:
        """Rewrite priority and due markers from the task's columns."""
        task = self.tasks.get(task_id)
        if task is None:
            return
        self.rewrite(task_id, priority=task.priority, due_date_raw=task.due_date_raw)

    # ------------------------------------------------------------------
    # Rename
    # ------------------------------------------------------------------

    def apply_rename(
        self,
        task_id: str,
        old: ParsedDescription,
        new: ParsedDescription,
        graph: RelationshipGraph,
    ) -> list[str]:
        """Turn the relationship delta between two parses into graph calls.

        Only references that were added or removed are acted on, so edits to
        the prose cannot add or drop relationships. Removals run before
        additions. Invalid references are skipped and reported.

        Returns:
            Warnings for references that could not be applied
        """
        warnings: list[str] = []

        def attempt(label: str, action) -> None:
            warning = graph.attempt(label, action)
            if warning:
                warnings.append(warning)

        # Removals
        if old.parent_id and old.parent_id != new.parent_id:
            current = self.tasks.get(task_id)
            if current is not None and current.parent_id == old.parent_id:
                attempt(f"^{old.parent_id}", lambda: graph.unset_parent(task_id))
        for ref in _removed(old.blocks_ids, new.blocks_ids):
            attempt(f"!{ref}", lambda ref=ref: graph.remove_blocker(task_id, ref))
        for ref in _removed(old.inverse_parent_ids, new.inverse_parent_ids):
            attempt(f"-^{ref}", lambda ref=ref: graph.detach_child(task_id, ref))
        for ref in _removed(old.inverse_blocked_by_ids, new.inverse_blocked_by_ids):
            attempt(f"-!{ref}", lambda ref=ref: graph.remove_blocker(ref, task_id))
        for ref in _removed(old.related_ids, new.related_ids):
            attempt(f"~{ref}", lambda ref=ref: graph.remove_related(task_id, ref))

        # Additions
        if new.parent_id and new.parent_id != old.parent_id:
            attempt(f"^{new.parent_id}", lambda: graph.set_parent(task_id, new.parent_id))
        for ref in _added(old.blocks_ids, new.blocks_ids):
            attempt(f"!{ref}", lambda ref=ref: graph.add_blocker(task_id, ref))
        for ref in _added(old.inverse_parent_ids, new.inverse_parent_ids):
            attempt(f"-^{ref}", lambda ref=ref: graph.set_parent(ref, task_id))
        for ref in _added(old.inverse_blocked_by_ids, new.inverse_blocked_by_ids):
            attempt(f"-!{ref}", lambda ref=ref: graph.add_blocker(ref, task_id))
        for ref in _added(old.related_ids, new.related_ids):
            attempt(f"~{ref}", lambda ref=ref: graph.add_related(task_id, ref))

        return warnings


def _added(old: list[str], new: list[str]) -> list[str]:
    return [ref for ref in new if ref not in old]


def _removed(old: list[str], new: list[str]) -> list[str]:
    return [ref for ref in old if ref not in new]
