"""Tests for the cmdorc-backed test runner."""

import asyncio
import itertools
from pathlib import Path

import pytest
from cmdorc import RunState

from testwatch_core.models import RunConfiguration, RunOptions, RunResult
from testwatch_core.runner_adapter import CmdorcTestRunner, build_vars
from testwatch_core.test_watcher import TestWatcher


class FakeHandle:
    """RunHandle double completed by the test."""

    _ids = itertools.count(1)

    def __init__(self, name):
        self.command_name = name
        self.run_id = f"run-{next(self._ids)}"
        self.state = RunState.RUNNING
        self.output_file = None
        self._done = asyncio.Event()

    async def wait(self, timeout=None):
        await self._done.wait()

    def finish(self, state, output_file=None):
        self.state = state
        self.output_file = output_file
        self._done.set()


class FakeOrchestrator:
    """Orchestrator double exposing the calls the runner makes."""

    def __init__(self, commands=("Tests",)):
        self.commands = set(commands)
        self.handles = []
        self.vars = []
        self.cancelled = []
        self.fail_with = None
        self.cancel_fails_with = None

    def has_command(self, name):
        return name in self.commands

    async def run_command(self, name, vars=None):
        if self.fail_with:
            raise self.fail_with
        handle = FakeHandle(name)
        self.handles.append(handle)
        self.vars.append(vars)
        return handle

    async def cancel_run(self, run_id, comment=None):
        if self.cancel_fails_with:
            raise self.cancel_fails_with
        self.cancelled.append(run_id)
        for handle in self.handles:
            if handle.run_id == run_id:
                handle.finish(RunState.CANCELLED)
        return True


def make_options(results, cfg=None):
    return RunOptions(
        configuration=cfg or RunConfiguration(watch=True),
        test_watcher=TestWatcher(is_watch_mode=True),
        on_complete=results.append,
    )


async def start(runner, options, orchestrator, count=1):
    """Start a run and wait until its handle exists."""
    task = asyncio.ensure_future(runner.run(options))
    while len(orchestrator.handles) < count and not task.done():
        await asyncio.sleep(0)
    return task


class TestBuildVars:
    def test_no_filters(self):
        assert build_vars(RunConfiguration()) == {
            "test_path_pattern": "",
            "test_name_pattern": "",
            "update_snapshot": "none",
            "only_changed": "false",
            "test_args": "",
        }

    def test_filters_and_snapshot(self):
        cfg = RunConfiguration(
            test_path_pattern="tests/api",
            test_name_pattern="login and not slow",
            update_snapshot="all",
            only_changed=True,
        )

        run_vars = build_vars(cfg)

        assert run_vars["only_changed"] == "true"
        assert run_vars["test_args"] == "-k 'login and not slow' --snapshot-update tests/api"


class TestCmdorcTestRunner:
    def test_unknown_command(self):
        with pytest.raises(ValueError, match="Test command not found in config: Unit"):
            CmdorcTestRunner(FakeOrchestrator(), "Unit")

    @pytest.mark.asyncio
    async def test_success(self):
        orchestrator = FakeOrchestrator()
        runner = CmdorcTestRunner(orchestrator, "Tests")
        results = []

        task = await start(runner, make_options(results, RunConfiguration(test_name_pattern="x")), orchestrator)
        orchestrator.handles[0].finish(RunState.SUCCESS, output_file=Path("out.log"))
        await task

        assert orchestrator.vars[0]["test_args"] == "-k x"
        assert results == [RunResult(success=True, output_file=Path("out.log"))]

    @pytest.mark.asyncio
    async def test_failure(self):
        orchestrator = FakeOrchestrator()
        runner = CmdorcTestRunner(orchestrator, "Tests")
        results = []

        task = await start(runner, make_options(results), orchestrator)
        orchestrator.handles[0].finish(RunState.FAILED)
        await task

        assert results[0].success is False
        assert results[0].error == "Tests failed"

    @pytest.mark.asyncio
    async def test_run_command_error(self):
        orchestrator = FakeOrchestrator()
        orchestrator.fail_with = RuntimeError("bad template")
        runner = CmdorcTestRunner(orchestrator, "Tests")
        results = []

        await runner.run(make_options(results))

        assert results[0].success is False
        assert results[0].error == "bad template"

    @pytest.mark.asyncio
    async def test_already_interrupted_does_not_start(self):
        orchestrator = FakeOrchestrator()
        runner = CmdorcTestRunner(orchestrator, "Tests")
        results = []
        options = make_options(results)
        options.test_watcher.interrupt()

        await runner.run(options)

        assert orchestrator.handles == []
        assert results[0].error == "Tests interrupted"

    @pytest.mark.asyncio
    async def test_interrupt_cancels_own_run(self):
        orchestrator = FakeOrchestrator()
        runner = CmdorcTestRunner(orchestrator, "Tests")
        results = []
        options = make_options(results)

        task = await start(runner, options, orchestrator)
        options.test_watcher.interrupt()
        assert len(runner._tasks) == 1
        await task

        assert orchestrator.cancelled == [orchestrator.handles[0].run_id]
        assert results[0].error == "Tests cancelled"
        await asyncio.sleep(0)
        assert runner._tasks == set()

    @pytest.mark.asyncio
    async def test_cancel_error_logged(self, caplog):
        orchestrator = FakeOrchestrator()
        orchestrator.cancel_fails_with = RuntimeError("gone")
        runner = CmdorcTestRunner(orchestrator, "Tests")
        options = make_options([])

        task = await start(runner, options, orchestrator)
        options.test_watcher.interrupt()
        await asyncio.gather(*runner._tasks)

        assert "Failed to cancel 'Tests': gone" in caplog.text
        orchestrator.handles[0].finish(RunState.CANCELLED)
        await task

    @pytest.mark.asyncio
    async def test_out_of_order_completion(self):
        orchestrator = FakeOrchestrator()
        runner = CmdorcTestRunner(orchestrator, "Tests")
        first, second = [], []

        first_task = await start(runner, make_options(first), orchestrator, count=1)
        second_task = await start(runner, make_options(second), orchestrator, count=2)
        orchestrator.handles[1].finish(RunState.SUCCESS)
        await second_task

        assert second[0].success is True
        assert first == []

        orchestrator.handles[0].finish(RunState.FAILED)
        await first_task

        assert first[0].error == "Tests failed"

    @pytest.mark.asyncio
    async def test_interrupt_leaves_other_runs(self):
        orchestrator = FakeOrchestrator()
        runner = CmdorcTestRunner(orchestrator, "Tests")
        first, second = [], []
        first_options = make_options(first)

        first_task = await start(runner, first_options, orchestrator, count=1)
        second_task = await start(runner, make_options(second), orchestrator, count=2)
        first_options.test_watcher.interrupt()
        await first_task

        assert orchestrator.cancelled == [orchestrator.handles[0].run_id]
        assert orchestrator.handles[1].state == RunState.RUNNING

        orchestrator.handles[1].finish(RunState.SUCCESS)
        await second_task
        assert second[0].success is True
