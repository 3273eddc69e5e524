#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Streaming protocol handler and the bounded turn loop.

Chunks from the model are echoed to the output sink and buffered in the
action scanner. As soon as the buffer holds a complete, unprocessed action
tag the handler runs the resulting plan, then keeps streaming. When the
reply ends the turn loop decides what happens next:

- no actions in the reply: stop and wait for the user
- a successful end_task: stop
- a failed group: record the feedback in the context and stop
- otherwise: send the formatted results back as the next prompt

The loop never runs more than ``MAX_TURNS`` model calls per user message.
"""

import json
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set

from tagrunner import config
from tagrunner.actions.parser import ActionParser
from tagrunner.actions.runner import PlanOutcome, PlanRunner, parse_and_execute
from tagrunner.context.holder import ContextHolder
from tagrunner.debug_logger import get_logger
from tagrunner.errors import BufferOverflowError, LLMError, classify_llm_error


StreamFunction = Callable[[Callable[[str], None]], str]


@dataclass
class StreamState:
    """Per-session streaming state, cleared after each plan and each turn."""
    buffer: str = ""
    response: str = ""
    processed_tags: Set[str] = field(default_factory=set)
    is_processing: bool = False
    is_complete: bool = False
    # Set once a plan failed or ended the task; later tags in the reply are not run
    halted: bool = False
    outcomes: List[PlanOutcome] = field(default_factory=list)
    errors: List[LLMError] = field(default_factory=list)


@dataclass
class TurnSummary:
    """How a user message was handled across all of its turns."""
    turns: int = 0
    outcomes: List[PlanOutcome] = field(default_factory=list)
    stop_reason: str = ""
    last_response: str = ""
    # Error chunks and buffer overflows seen while streaming
    errors: List[LLMError] = field(default_factory=list)


class StreamProtocolHandler:
    """Feeds streamed text to the parser and runs plans as tags complete."""

    def __init__(
        self,
        parser: ActionParser,
        runner: PlanRunner,
        holder: ContextHolder,
        output: Optional[Callable[[str], None]] = None,
        max_buffer_size: Optional[int] = None,
        keep_size: Optional[int] = None,
    ):
        self.parser = parser
        self.runner = runner
        self.holder = holder
        self.output = output or (lambda text: print(text, end="", flush=True))
        self.max_buffer_size = max_buffer_size or config.MAX_BUFFER_SIZE
        self.keep_size = keep_size or config.BUFFER_KEEP_SIZE
        self.state = StreamState()

    # ------------------------------------------------------------------
    # Chunk handling
    # ------------------------------------------------------------------

    def _handle_error_chunk(self, chunk: str) -> bool:
        """Surface ``{"error": ...}`` chunks. Returns True if ``chunk`` was one."""
        if not chunk.lstrip().startswith('{"error":'):
            return False
        try:
            payload = json.loads(chunk)
        except ValueError:
            payload = {"error": {"message": chunk}}
        error = classify_llm_error(payload)
        self.state.errors.append(error)
        get_logger().log_error("streaming", error, {"error_type": error.error_type.value})
        self.output(f"\n[Error] {error.error_type.value}: {error.message}\n")
        return True

    def _guard_overflow(self) -> None:
        if len(self.state.buffer) <= self.max_buffer_size:
            return
        size = len(self.state.buffer)
        self.state.buffer = self.state.buffer[-self.keep_size:]
        self.parser.scanner.trim(self.max_buffer_size, self.keep_size)
        error = BufferOverflowError("Buffer size limit exceeded", {
            "max_size": self.max_buffer_size,
            "current_size": size,
        })
        self.state.errors.append(error)
        get_logger().log("streaming", "BUFFER_OVERFLOW", error.details, "WARNING")

    def handle_chunk(self, chunk: str) -> Optional[PlanOutcome]:
        """Consume one chunk; returns the outcome if it completed a plan."""
        if not chunk or self._handle_error_chunk(chunk):
            return None

        self.output(chunk)
        self.state.buffer += chunk
        self.state.response += chunk
        self.parser.scanner.append(chunk)
        self._guard_overflow()

        if self.state.is_processing or self.state.halted:
            return None

        # A nesting violation is reported right away instead of waiting for more text
        has_tag, has_error = self.parser.scanner.check()
        self.state.is_complete = has_tag or has_error
        if not self.state.is_complete:
            return None
        return self._process()

    def _process(self) -> PlanOutcome:
        self.state.is_processing = True
        try:
            outcome = parse_and_execute("", self.parser, self.runner)
        finally:
            self.state.is_processing = False

        self.state.outcomes.append(outcome)
        if outcome.failed or outcome.task_ended:
            self.state.halted = True

        # Keep only the text after the executed tags so a partial next tag survives
        pending = self.parser.scanner.pending_text
        self.state.processed_tags |= self.parser.scanner.processed_tags
        self.parser.reset()
        self.parser.scanner.append(pending)
        self.state.buffer = pending
        self.state.is_complete = False
        return outcome

    def is_processing(self) -> bool:
        return self.state.is_processing

    def reset(self) -> None:
        self.parser.reset()
        self.state = StreamState()

    # ------------------------------------------------------------------
    # Turn loop
    # ------------------------------------------------------------------

    def stream_turn(self, stream: StreamFunction) -> str:
        """Run one model call through the handler and record the reply."""
        self.reset()
        response = stream(self.handle_chunk)
        # Providers that return text without streaming it still get parsed
        if response and not self.state.response:
            self.handle_chunk(response)
        get_logger().log("streaming", "TURN_STREAMED", {
            "response_length": len(response or ""),
            "tags_processed": len(self.state.processed_tags),
            "errors": len(self.state.errors),
        }, "DEBUG")
        text = self.state.response or response
        if text.strip():
            self.holder.add_message("assistant", text)
        return text

    def run_turns(self, prompt: str, stream: StreamFunction, max_turns: Optional[int] = None) -> TurnSummary:
        """Send ``prompt`` and keep following up until a stop condition.

        Raises:
            LLMError: the transport failed and nothing was received
        """
        debug_logger = get_logger()
        limit = max_turns or config.MAX_TURNS
        summary = TurnSummary()
        next_prompt = prompt

        while summary.turns < limit:
            self.holder.add_message("user", next_prompt)
            summary.turns += 1
            summary.last_response = self.stream_turn(stream)
            outcomes = list(self.state.outcomes)
            summary.outcomes.extend(outcomes)
            summary.errors.extend(self.state.errors)

            if not any(outcome.has_actions or outcome.format_error for outcome in outcomes):
                summary.stop_reason = "no_actions"
                break
            if any(outcome.task_ended for outcome in outcomes):
                summary.stop_reason = "end_task"
                break

            feedback = "\n\n".join(o.feedback for o in outcomes if o.has_actions or o.format_error)
            if any(outcome.failed for outcome in outcomes):
                self.holder.add_message("user", feedback)
                summary.stop_reason = "failed"
                break
            next_prompt = feedback
        else:
            summary.stop_reason = "max_turns"

        debug_logger.log("streaming", "TURNS_FINISHED", {
            "turns": summary.turns,
            "stop_reason": summary.stop_reason,
            "errors": [str(error) for error in summary.errors],
        })
        self.reset()
        return summary
