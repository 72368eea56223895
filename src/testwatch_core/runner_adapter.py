"""Test runner backed by a cmdorc CommandOrchestrator.

The test command is an ordinary cmdorc command; each run passes the current
RunConfiguration in as template variables, e.g.::

    [[command]]
    name = "Tests"
    command = "pytest {{ test_args }}"
    triggers = []
"""

import asyncio
import logging
import shlex

from cmdorc import CommandOrchestrator, RunHandle, RunState

from testwatch_core.config import WatchSettings
from testwatch_core.models import RunConfiguration, RunOptions, RunResult

logger = logging.getLogger(__name__)


def build_vars(cfg: RunConfiguration) -> dict[str, str]:
    """Template variables for one run of the test command."""
    args = []
    if cfg.test_name_pattern:
        args.extend(["-k", shlex.quote(cfg.test_name_pattern)])
    if cfg.update_snapshot == "all":
        args.append("--snapshot-update")
    if cfg.test_path_pattern:
        args.append(shlex.quote(cfg.test_path_pattern))

    return {
        "test_path_pattern": cfg.test_path_pattern,
        "test_name_pattern": cfg.test_name_pattern,
        "update_snapshot": cfg.update_snapshot,
        "only_changed": "true" if cfg.only_changed else "false",
        "test_args": " ".join(args),
    }


class CmdorcTestRunner:
    """Runs the configured test command once per watch run.

    Each run waits on its own RunHandle. Interrupting a run's token cancels
    that run only.
    """

    def __init__(self, orchestrator: CommandOrchestrator, command_name: str):
        """Initialize runner.

        Args:
            orchestrator: CommandOrchestrator owning the test command
            command_name: Name of the command that runs the tests

        Raises:
            ValueError: If the orchestrator has no such command
        """
        if not orchestrator.has_command(command_name):
            raise ValueError(f"Test command not found in config: {command_name}")

        self.orchestrator = orchestrator
        self.command_name = command_name
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: WatchSettings) -> "CmdorcTestRunner":
        return cls(CommandOrchestrator(settings.runner_config), settings.command)

    def _result_from_handle(self, handle: RunHandle) -> RunResult:
        if handle.state == RunState.SUCCESS:
            return RunResult(success=True, output_file=handle.output_file)
        return RunResult(
            success=False,
            error=f"{self.command_name} {handle.state.value}",
            output_file=handle.output_file,
        )

    def _make_cancel(self, handle: RunHandle):
        def cancel() -> None:
            logger.debug(f"Run interrupted, cancelling '{self.command_name}' run {handle.run_id}")

            async def cancel_run():
                try:
                    await self.orchestrator.cancel_run(handle.run_id, "superseded by a newer watch run")
                except Exception as e:
                    logger.error(f"Failed to cancel '{self.command_name}': {e}")

            task = asyncio.ensure_future(cancel_run())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        return cancel

    async def run(self, options: RunOptions) -> None:
        """Run the test command and report through options.on_complete."""
        if options.test_watcher.is_interrupted():
            options.on_complete(RunResult(success=False, error=f"{self.command_name} interrupted"))
            return

        try:
            handle = await self.orchestrator.run_command(self.command_name, build_vars(options.configuration))
            options.test_watcher.add_listener(self._make_cancel(handle))
            await handle.wait()
            result = self._result_from_handle(handle)
        except Exception as e:
            logger.error(f"Error running '{self.command_name}': {e}")
            result = RunResult(success=False, error=str(e))

        options.on_complete(result)
