"""Tests for keeping description markers in step with edges."""

from __future__ import annotations

from todograph.models.core import Priority
from todograph.parsing.metadata_codec import parse


def _markers(tasks, task_id):
    return parse(tasks.get_task(task_id).description)


class TestEdgeChanges:
    def test_set_parent_writes_both_markers(self, tasks, add):
        parent = add("Parent")
        child = add("Child")
        tasks.set_parent(child, parent)
        assert tasks.get_task(child).description == f"Child\n^{parent}"
        assert tasks.get_task(parent).description == f"Parent\n-^{child}"

    def test_unset_parent_removes_both_markers(self, tasks, add):
        parent = add("Parent")
        child = add("Child")
        tasks.set_parent(child, parent)
        tasks.unset_parent(child)
        assert tasks.get_task(child).description == "Child"
        assert tasks.get_task(parent).description == "Parent"

    def test_reparent_moves_inverse_marker(self, tasks, add):
        first, second = add("First"), add("Second")
        child = add("Child")
        tasks.set_parent(child, first)
        tasks.set_parent(child, second)
        assert _markers(tasks, first).inverse_parent_ids == []
        assert _markers(tasks, second).inverse_parent_ids == [child]
        assert _markers(tasks, child).parent_id == second

    def test_blocker_markers(self, tasks, add):
        a, b = add("A"), add("B")
        tasks.add_blocker(a, b)
        assert _markers(tasks, a).blocks_ids == [b]
        assert _markers(tasks, b).inverse_blocked_by_ids == [a]
        tasks.remove_blocker(a, b)
        assert tasks.get_task(a).description == "A"
        assert tasks.get_task(b).description == "B"

    def test_related_markers_on_both_sides(self, tasks, add):
        a, b = add("A"), add("B")
        tasks.add_related(a, b)
        assert _markers(tasks, a).related_ids == [b]
        assert _markers(tasks, b).related_ids == [a]

    def test_existing_markers_are_kept(self, tasks, add):
        parent = add("Parent\np1 #home")
        child = add("Child")
        tasks.set_parent(child, parent)
        parsed = _markers(tasks, parent)
        assert parsed.inverse_parent_ids == [child]
        assert parsed.priority == Priority.HIGH
        assert parsed.tags == ["home"]
        assert parsed.prose == "Parent"

    def test_undo_restores_descriptions(self, tasks, history, add):
        parent = add("Parent")
        child = add("Child")
        tasks.set_parent(child, parent)
        assert history.undo().kind == "success"
        assert tasks.get_task(child).description == "Child"
        assert tasks.get_task(parent).description == "Parent"
        assert tasks.get_task(child).parent_id is None
        assert history.redo().kind == "success"
        assert tasks.get_task(parent).description == f"Parent\n-^{child}"

    def test_undo_unset_parent_restores_markers(self, tasks, history, add):
        parent = add("Parent")
        child = add(f"Child\n^{parent}")
        tasks.unset_parent(child)
        assert tasks.get_task(parent).description == "Parent"
        assert history.undo().kind == "success"
        assert tasks.get_task(child).parent_id == parent
        assert tasks.get_task(child).description == f"Child\n^{parent}"
        assert tasks.get_task(parent).description == f"Parent\n-^{child}"


class TestMarkersDriveEdges:
    def test_add_with_parent_marker(self, tasks, add):
        parent = add("Parent")
        child = add(f"Child\n^{parent}")
        assert tasks.get_task(child).parent_id == parent
        assert _markers(tasks, parent).inverse_parent_ids == [child]

    def test_add_with_inverse_markers(self, tasks, add):
        child = add("Child")
        blocker = add("Blocker")
        task_id = add(f"Parent\n-^{child} -!{blocker}")
        assert tasks.get_task(child).parent_id == task_id
        assert [t.id for t in tasks.get_blockers(task_id)] == [blocker]
        assert _markers(tasks, blocker).blocks_ids == [task_id]

    def test_rename_dropping_marker_removes_edge(self, tasks, add):
        parent = add("Parent")
        child = add(f"Child\n^{parent}")
        result = tasks.rename_task(child, "Child renamed")
        assert result.kind == "success"
        assert tasks.get_task(child).parent_id is None
        assert tasks.get_task(parent).description == "Parent"

    def test_rename_adding_marker_adds_edge(self, tasks, add):
        a, b = add("A"), add("B")
        tasks.rename_task(a, f"A\n~{b}")
        assert [t.id for t in tasks.get_related(b)] == [a]
        assert _markers(tasks, b).related_ids == [a]

    def test_prose_edit_keeps_existing_edges(self, tasks, add):
        a, b = add("A"), add("B")
        tasks.add_blocker(a, b)
        tasks.rename_task(a, f"A with more words\n!{b}")
        assert [t.id for t in tasks.get_blocking(a)] == [b]

    def test_undo_rename_restores_edges_and_markers(self, tasks, history, add):
        parent = add("Parent")
        child = add(f"Child\n^{parent}")
        tasks.rename_task(child, "Child")
        history.undo()
        assert tasks.get_task(child).parent_id == parent
        assert tasks.get_task(parent).description == f"Parent\n-^{child}"

    def test_cycle_closing_marker_is_skipped_on_add(self, tasks, add):
        a, b, c = add("A"), add("B"), add("C")
        tasks.add_blocker(a, b)
        tasks.add_blocker(b, c)
        c_before = tasks.get_task(c).description
        result = tasks.add_task(f"D\n-!{c} !{a} ~{b} p1")
        assert result.kind == "success"
        assert len(result.warnings) == 1
        assert f"-!{c}" in result.warnings[0]
        d = result.task_id
        assert tasks.get_task(c).description == c_before
        assert tasks.get_blockers(d) == []
        assert [t.id for t in tasks.get_blocking(d)] == [a]
        assert [t.id for t in tasks.get_related(d)] == [b]
        assert tasks.get_task(d).priority == Priority.HIGH


class TestMetadataMarkers:
    def test_set_priority_rewrites_marker(self, tasks, add):
        task_id = add("Report\n#work")
        tasks.set_priority(task_id, Priority.HIGH)
        assert tasks.get_task(task_id).description == "Report\np1 #work"
        tasks.set_priority(task_id, None)
        assert tasks.get_task(task_id).description == "Report\n#work"

    def test_set_due_date_rewrites_marker(self, tasks, add):
        task_id = add("Report")
        tasks.set_due_date(task_id, "tomorrow")
        assert tasks.get_task(task_id).description == "Report\n@2026-03-11"
