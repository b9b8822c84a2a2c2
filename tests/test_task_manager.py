"""Tests for the TaskManager lifecycle helper."""

from __future__ import annotations

import asyncio
import unittest

from agentic_chat.task_manager import TaskManager


class TaskManagerTests(unittest.IsolatedAsyncioTestCase):
    """Validate named and anonymous task lifecycle management."""

    async def test_spawn_anonymous_and_cancel_all(self) -> None:
        tm = TaskManager()
        cancelled: list[bool] = []

        async def _worker() -> None:
            try:
                await asyncio.sleep(9999)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        task = tm.spawn(_worker())
        await asyncio.sleep(0)  # Let the task start.
        await tm.cancel_all()
        self.assertTrue(task.done())
        self.assertTrue(cancelled)

    async def test_spawn_named_and_cancel_by_name(self) -> None:
        tm = TaskManager()
        cancelled: list[bool] = []

        async def _worker() -> None:
            try:
                await asyncio.sleep(9999)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        task = tm.spawn(_worker(), name="my_task")
        await asyncio.sleep(0)  # Let the task start.
        self.assertIs(tm.get("my_task"), task)
        self.assertTrue(tm.running("my_task"))

        await tm.cancel("my_task")
        self.assertTrue(task.done())
        self.assertTrue(cancelled)
        self.assertIsNone(tm.get("my_task"))
        self.assertFalse(tm.running("my_task"))

    async def test_cancel_nonexistent_name_is_noop(self) -> None:
        tm = TaskManager()
        await tm.cancel("does_not_exist")

    async def test_named_tasks_self_clean(self) -> None:
        tm = TaskManager()

        async def _quick() -> str:
            return "done"

        task = tm.spawn(_quick(), name="quick")
        self.assertEqual(await task, "done")
        await asyncio.sleep(0)  # Let done callbacks run.
        self.assertIsNone(tm.get("quick"))
        await tm.cancel_all()

    async def test_failed_task_is_logged(self) -> None:
        tm = TaskManager()

        async def _boom() -> None:
            raise ValueError("boom")

        with self.assertLogs("agentic_chat.task_manager", level="WARNING") as captured:
            task = tm.spawn(_boom())
            with self.assertRaises(ValueError):
                await task
            await asyncio.sleep(0)
        self.assertIn("task.failed", "\n".join(captured.output))

    async def test_cancel_all_handles_mixed_tasks(self) -> None:
        tm = TaskManager()
        results: list[str] = []

        async def _named_worker() -> None:
            try:
                await asyncio.sleep(9999)
            except asyncio.CancelledError:
                results.append("named")
                raise

        async def _anon_worker() -> None:
            try:
                await asyncio.sleep(9999)
            except asyncio.CancelledError:
                results.append("anon")
                raise

        tm.spawn(_named_worker(), name="n1")
        tm.spawn(_anon_worker())
        await asyncio.sleep(0)  # Let the tasks start.
        await tm.cancel_all()
        self.assertIn("named", results)
        self.assertIn("anon", results)


if __name__ == "__main__":
    unittest.main()
