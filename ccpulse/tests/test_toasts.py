import unittest
from datetime import datetime, timedelta, timezone
from typing import Optional

from ccpulse.models import QueueTaskEvent
from ccpulse.services.toasts import ToastStateMachine

T0 = datetime(2026, 2, 25, 10, 0, tzinfo=timezone.utc)


def _event(
    kind: str,
    task_id: Optional[str],
    title: Optional[str],
    offset: float,
    session_id: str = "session-1",
    task_type: Optional[str] = "local_bash",
) -> QueueTaskEvent:
    return QueueTaskEvent(
        sessionId=session_id,
        taskId=task_id,
        description=title,
        taskType=task_type,
        timestamp=T0 + timedelta(seconds=offset),
        kind=kind,
        cwd="/Users/example/repo",
    )


class ToastStateMachineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.toasts = ToastStateMachine()

    def test_enqueue_then_remove_finishes_same_toast(self) -> None:
        self.toasts.apply(_event("enqueue", "t1", "Build", 0))
        running = self.toasts.visible()
        self.assertEqual(len(running), 1)
        self.assertEqual(running[0].status, "running")

        self.toasts.apply(_event("remove", "t1", "Build", 1))
        done = self.toasts.visible()
        self.assertEqual(len(done), 1)
        self.assertEqual(done[0].title, "Build")
        self.assertEqual(done[0].status, "done")
        self.assertEqual(done[0].id, running[0].id)
        self.assertEqual(done[0].finishedAt, T0 + timedelta(seconds=1))
        self.assertEqual(done[0].startedAt, T0)

    def test_repeated_enqueue_coalesces_into_one_toast(self) -> None:
        self.toasts.apply(_event("enqueue", "t1", "Build", 0))
        first = self.toasts.visible()[0]

        self.toasts.apply(_event("enqueue", "t1", "Build and test", 3))
        visible = self.toasts.visible()
        self.assertEqual(len(visible), 1)
        self.assertEqual(visible[0].id, first.id)
        self.assertEqual(visible[0].startedAt, first.startedAt)
        self.assertEqual(visible[0].title, "Build and test")
        self.assertEqual(visible[0].status, "running")

    def test_dismissed_running_toast_completes_as_new_toast(self) -> None:
        self.toasts.apply(_event("enqueue", "t1", "Build", 0))
        dismissed_id = self.toasts.visible()[0].id
        self.assertTrue(self.toasts.dismiss(dismissed_id))
        self.assertEqual(self.toasts.visible(), [])
        self.assertTrue(self.toasts.is_dismissed("session-1:t1"))

        self.toasts.apply(_event("remove", "t1", "Build", 2))
        visible = self.toasts.visible()
        self.assertEqual(len(visible), 1)
        self.assertEqual(visible[0].status, "done")
        self.assertNotEqual(visible[0].id, dismissed_id)
        self.assertIsNone(self.toasts.get(dismissed_id))
        self.assertFalse(self.toasts.is_dismissed("session-1:t1"))

    def test_enqueue_after_dismissal_starts_fresh_toast(self) -> None:
        self.toasts.apply(_event("enqueue", "t1", "Build", 0))
        dismissed_id = self.toasts.visible()[0].id
        self.toasts.dismiss(dismissed_id)

        self.toasts.apply(_event("enqueue", "t1", "Build again", 5))
        visible = self.toasts.visible()
        self.assertEqual(len(visible), 1)
        self.assertNotEqual(visible[0].id, dismissed_id)
        self.assertEqual(visible[0].startedAt, T0 + timedelta(seconds=5))
        self.assertFalse(self.toasts.is_dismissed("session-1:t1"))

    def test_remove_without_prior_enqueue_creates_done_toast(self) -> None:
        self.toasts.apply(_event("remove", "t9", "Started before we looked", 0))
        visible = self.toasts.visible()
        self.assertEqual(len(visible), 1)
        self.assertEqual(visible[0].status, "done")
        self.assertEqual(visible[0].startedAt, visible[0].finishedAt)

    def test_untitled_unmatched_remove_still_creates_done_toast(self) -> None:
        self.toasts.apply(_event("remove", "t9", None, 0, task_type=None))
        visible = self.toasts.visible()
        self.assertEqual(len(visible), 1)
        self.assertEqual(visible[0].status, "done")
        self.assertEqual(visible[0].title, "Claude task")

    def test_untitled_remove_after_dismissal_creates_done_toast(self) -> None:
        self.toasts.apply(_event("enqueue", "t1", "Build", 0))
        dismissed_id = self.toasts.visible()[0].id
        self.toasts.dismiss(dismissed_id)

        self.toasts.apply(_event("remove", "t1", None, 2, task_type=None))
        visible = self.toasts.visible()
        self.assertEqual(len(visible), 1)
        self.assertEqual(visible[0].status, "done")
        self.assertEqual(visible[0].title, "Claude task")
        self.assertNotEqual(visible[0].id, dismissed_id)

    def test_done_toast_auto_hides_after_delay(self) -> None:
        self.toasts.apply(_event("enqueue", "t1", "Build", 0))
        self.toasts.apply(_event("remove", "t1", "Build", 1))
        finished_at = T0 + timedelta(seconds=1)

        self.assertEqual(self.toasts.tick(finished_at + timedelta(seconds=3.9)), [])
        self.assertEqual(len(self.toasts.visible()), 1)

        expired = self.toasts.tick(finished_at + timedelta(seconds=4))
        self.assertEqual(len(expired), 1)
        self.assertEqual(self.toasts.visible(), [])

    def test_tick_never_expires_running_toasts(self) -> None:
        self.toasts.apply(_event("enqueue", "t1", "Build", 0))
        self.toasts.tick(T0 + timedelta(hours=1))
        self.assertEqual(len(self.toasts.visible()), 1)

    def test_visible_caps_to_newest_running(self) -> None:
        for offset, title in enumerate(("One", "Two", "Three", "Four")):
            self.toasts.apply(_event("enqueue", f"t{offset}", title, offset, session_id=f"session-{offset}"))

        visible = self.toasts.visible()
        self.assertEqual([t.title for t in visible], ["Four", "Three", "Two"])
        self.assertTrue(all(t.status == "running" for t in visible))
        self.assertEqual([t.title for t in self.toasts.visible(max_count=10)], ["Four", "Three", "Two", "One"])
        self.assertEqual(self.toasts.visible(max_count=0), [])

    def test_running_sorted_before_done(self) -> None:
        self.toasts.apply(_event("enqueue", "a", "Old running", 0))
        self.toasts.apply(_event("enqueue", "b", "Finished first", 1))
        self.toasts.apply(_event("enqueue", "c", "Finished last", 2))
        self.toasts.apply(_event("remove", "b", None, 3))
        self.toasts.apply(_event("remove", "c", None, 4))

        visible = self.toasts.visible()
        self.assertEqual([t.title for t in visible], ["Old running", "Finished last", "Finished first"])
        self.assertEqual([t.status for t in visible], ["running", "done", "done"])

    def test_enqueue_without_any_title_is_ignored(self) -> None:
        self.toasts.apply(_event("enqueue", "t1", None, 0, task_type=None))
        self.toasts.apply(_event("enqueue", "t2", "   ", 0, task_type=""))
        self.assertEqual(self.toasts.visible(), [])

    def test_task_type_is_fallback_title(self) -> None:
        self.toasts.apply(_event("enqueue", "t1", None, 0, task_type="local_agent"))
        self.assertEqual(self.toasts.visible()[0].title, "local_agent")

    def test_events_without_task_id_are_ignored(self) -> None:
        self.assertIsNone(self.toasts.apply(_event("remove", None, "Build", 0)))
        self.assertEqual(len(self.toasts), 0)

    def test_dismiss_done_toast_and_unknown_id(self) -> None:
        self.toasts.apply(_event("remove", "t1", "Build", 0))
        done_id = self.toasts.visible()[0].id
        self.assertTrue(self.toasts.dismiss(done_id))
        self.assertFalse(self.toasts.is_dismissed("session-1:t1"))
        self.assertFalse(self.toasts.dismiss(done_id))
        self.assertFalse(self.toasts.dismiss("nope"))

    def test_reset_clears_everything(self) -> None:
        self.toasts.apply(_event("enqueue", "t1", "Build", 0))
        self.toasts.dismiss(self.toasts.visible()[0].id)
        self.toasts.apply(_event("enqueue", "t2", "Lint", 1))

        self.toasts.reset()
        self.assertEqual(self.toasts.visible(), [])
        self.assertFalse(self.toasts.is_dismissed("session-1:t1"))

    def test_apply_all_orders_by_timestamp(self) -> None:
        self.toasts.apply_all([
            _event("remove", "t1", "Build", 1),
            _event("enqueue", "t1", "Build", 0),
        ])
        visible = self.toasts.visible()
        self.assertEqual(len(visible), 1)
        self.assertEqual(visible[0].startedAt, T0)
        self.assertEqual(visible[0].status, "done")

    def test_custom_auto_hide_and_ids(self) -> None:
        ids = iter(["toast-a", "toast-b"])
        toasts = ToastStateMachine(auto_hide_after=timedelta(seconds=10), max_visible=1, id_factory=lambda: next(ids))
        toasts.apply(_event("remove", "t1", "Build", 0))
        toasts.apply(_event("remove", "t2", "Lint", 1))

        self.assertEqual([t.id for t in toasts.visible()], ["toast-b"])
        toasts.tick(T0 + timedelta(seconds=9))
        self.assertEqual(len(toasts), 2)
        toasts.tick(T0 + timedelta(seconds=11))
        self.assertEqual(len(toasts), 0)


if __name__ == "__main__":
    unittest.main()
