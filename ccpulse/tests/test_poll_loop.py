import asyncio
import unittest

from watchfiles import Change

from ccpulse.services.poll_loop import PollLoop, _session_log_filter


class _FakeFeed:
    def __init__(self, fail_first: bool = False) -> None:
        self.calls = 0
        self.fail_first = fail_first

    def refresh(self):
        self.calls += 1
        if self.fail_first and self.calls == 1:
            raise RuntimeError("boom")
        return None


class PollLoopTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.loop = PollLoop()

    async def asyncTearDown(self) -> None:
        await self.loop.stop()

    async def _wait_for_calls(self, feed: _FakeFeed, count: int) -> None:
        for _ in range(200):
            if feed.calls >= count:
                return
            await asyncio.sleep(0.01)
        self.fail(f"feed refreshed {feed.calls} time(s), expected {count}")

    async def test_start_runs_immediately_and_stop_halts(self) -> None:
        feed = _FakeFeed()
        await self.loop.start(feed, interval_seconds=60)
        await self._wait_for_calls(feed, 1)
        self.assertTrue(self.loop.is_running)

        await self.loop.stop()
        self.assertFalse(self.loop.is_running)
        calls = feed.calls
        await asyncio.sleep(0.05)
        self.assertEqual(feed.calls, calls)

    async def test_trigger_wakes_loop_before_interval(self) -> None:
        feed = _FakeFeed()
        await self.loop.start(feed, interval_seconds=60)
        await self._wait_for_calls(feed, 1)

        self.loop.trigger()
        await self._wait_for_calls(feed, 2)
        self.assertEqual(self.loop.cycles, 2)

    async def test_failed_cycle_does_not_stop_loop(self) -> None:
        feed = _FakeFeed(fail_first=True)
        with self.assertLogs("ccpulse.poll", level="ERROR"):
            await self.loop.start(feed, interval_seconds=0.05)
            await self._wait_for_calls(feed, 3)
        self.assertGreaterEqual(self.loop.cycles, 2)

    async def test_second_start_is_ignored(self) -> None:
        feed = _FakeFeed()
        await self.loop.start(feed, interval_seconds=60)
        other = _FakeFeed()
        with self.assertLogs("ccpulse.poll", level="WARNING"):
            await self.loop.start(other, interval_seconds=60)
        await self._wait_for_calls(feed, 1)
        self.assertEqual(other.calls, 0)


class SessionLogFilterTests(unittest.TestCase):
    def test_only_jsonl_changes_pass(self) -> None:
        self.assertTrue(_session_log_filter(Change.modified, "/p/repo/session.jsonl"))
        self.assertTrue(_session_log_filter(Change.added, "/p/repo/agent-1.jsonl"))
        self.assertFalse(_session_log_filter(Change.modified, "/p/repo/notes.md"))


if __name__ == "__main__":
    unittest.main()
