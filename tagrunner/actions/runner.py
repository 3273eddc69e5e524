#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Run execution plans group by group.

Groups run strictly in order and each group settles before the next one
starts. Parallel groups are dispatched on a thread pool and fail if any
member fails; siblings already running are allowed to finish. Sequential
groups stop at the first failure. A successful end_task ends the plan
without a follow-up turn.
"""

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from tagrunner import config
from tagrunner.actions.catalog import TERMINAL_TAGS
from tagrunner.actions.executor import ActionExecutor
from tagrunner.actions.formatting import ActionResult, format_results
from tagrunner.actions.parser import ActionGroup, ActionParser, ExecutionPlan
from tagrunner.debug_logger import get_logger
from tagrunner.errors import FormatError, LLMError


@dataclass
class PlanOutcome:
    """What happened when one plan ran."""
    results: List[ActionResult] = field(default_factory=list)
    failed: bool = False
    task_ended: bool = False
    format_error: Optional[FormatError] = None
    follow_up_response: Optional[str] = None

    @property
    def has_actions(self) -> bool:
        return bool(self.results)

    @property
    def feedback(self) -> str:
        """Formatted results in execution order."""
        if self.format_error is not None:
            return f"[Action Result] Failed - {self.format_error}"
        return format_results(self.results)

    @property
    def should_follow_up(self) -> bool:
        return self.has_actions and not self.failed and not self.task_ended


class PlanRunner:
    """Executes ExecutionPlans with the given ActionExecutor."""

    def __init__(self, executor: ActionExecutor, max_workers: Optional[int] = None):
        self.executor = executor
        self.max_workers = max_workers or config.PARALLEL_WORKERS

    def _run_parallel(self, group: ActionGroup) -> List[ActionResult]:
        workers = min(self.max_workers, len(group.actions))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tagrunner-action") as pool:
            futures = [pool.submit(self.executor.execute, action) for action in group.actions]
            wait(futures)
        return [future.result() for future in futures]

    def _run_sequential(self, group: ActionGroup) -> List[ActionResult]:
        results = []
        for action in group.actions:
            result = self.executor.execute(action)
            results.append(result)
            if not result.success:
                break
        return results

    def run(self, plan: ExecutionPlan) -> PlanOutcome:
        outcome = PlanOutcome(format_error=plan.error)
        if plan.error is not None:
            outcome.failed = True
            return outcome

        for index, group in enumerate(plan.groups):
            if group.parallel:
                results = self._run_parallel(group)
            else:
                results = self._run_sequential(group)
            outcome.results.extend(results)

            if any(r.success and r.action_type in TERMINAL_TAGS for r in results):
                outcome.task_ended = True
                break
            if not all(r.success for r in results):
                outcome.failed = True
                get_logger().log("runner", "GROUP_FAILED", {
                    "group": index,
                    "errors": [r.error for r in results if not r.success],
                }, "WARNING")
                break

        return outcome


def parse_and_execute(
    text: str,
    parser: ActionParser,
    runner: PlanRunner,
    follow_up: Optional[Callable[[str], str]] = None,
) -> PlanOutcome:
    """Parse ``text``, run the resulting plan and optionally send the follow-up.

    Any unexpected exception is logged and turned into an empty outcome.
    """
    debug_logger = get_logger()
    try:
        plan = parser.parse(text)
        if not plan and plan.error is None:
            debug_logger.log("runner", "NO_ACTIONS", {"text_length": len(text)}, "DEBUG")
            return PlanOutcome()

        outcome = runner.run(plan)
        if follow_up is not None and outcome.should_follow_up:
            outcome.follow_up_response = follow_up(outcome.feedback)
        return outcome
    except LLMError:
        raise
    except Exception as e:
        debug_logger.log_error("runner", e, {"text_preview": text[:200]})
        return PlanOutcome()
