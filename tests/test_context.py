"""Tests for context snapshots, the builder functions, eviction and the holder."""

import threading

import pytest

from tagrunner.context import builder
from tagrunner.context.evictor import cleanup_context, count_tokens, strip_annotations
from tagrunner.context.holder import ContextHolder
from tagrunner.context.store import (
    OP_COMMAND,
    OP_READ,
    OP_WRITE,
    ContextData,
    OperationRecord,
    estimate_tokens,
    merge_operation,
)
from tagrunner.errors import ContextError


def _add(store, role, content, phase="discovery"):
    return builder.build_message_context(role, content, phase, store)


def test_estimate_tokens_rounds_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_snapshots_are_never_mutated():
    empty = ContextData()
    store = _add(empty, "user", "hello")

    assert empty.conversation_history == ()
    assert store.version == empty.version + 1
    assert store.conversation_history[0].content == "hello"


def test_invalid_role_and_empty_content_are_rejected():
    with pytest.raises(ContextError):
        _add(ContextData(), "tool", "x")
    with pytest.raises(ContextError):
        _add(ContextData(), "user", "   ")


def test_duplicate_messages_are_not_appended_twice():
    store = _add(ContextData(), "user", "same")
    store = _add(store, "user", "same")
    store = _add(store, "assistant", "same")

    assert [m.role for m in store.conversation_history] == ["user", "assistant"]


def test_assistant_actions_become_pending_operations():
    store = _add(ContextData(), "assistant", (
        "<read_file><path>a.py</path><path>b.py</path></read_file>"
        "<write_file><path>c.py</path><content>x</content></write_file>"
        "<execute_command>pytest -q</execute_command>"
    ))

    assert set(store.file_operations) == {"a.py", "b.py", "c.py"}
    assert store.file_operations["c.py"].op_type == OP_WRITE
    assert store.command_operations["pytest -q"].status == "PENDING"


def test_success_is_sticky():
    store = builder.record_operation_result(ContextData(), OP_READ, "a.py", True, content="body")
    store = builder.record_operation_result(store, OP_READ, "a.py", False, error="gone")
    store = _add(store, "assistant", "<read_file><path>a.py</path></read_file>")

    record = store.file_operations["a.py"]
    assert record.success is True
    assert record.content == "body"


def test_failure_is_replaced_by_later_success():
    first = OperationRecord(op_type=OP_WRITE, key="a", timestamp=1.0, success=False, error="x")
    second = OperationRecord(op_type=OP_WRITE, key="a", timestamp=2.0, success=True)

    assert merge_operation(first, second) is second
    assert merge_operation(second, first) is second
    assert merge_operation(None, first) is first


def test_pending_mention_keeps_a_recorded_failure():
    failed = OperationRecord(op_type=OP_READ, key="a", timestamp=1.0, success=False, error="missing")
    pending = OperationRecord(op_type=OP_READ, key="a", timestamp=2.0)

    assert merge_operation(failed, pending) is failed
    assert merge_operation(pending, failed) is failed


def test_phase_prompt_goes_to_its_own_slot():
    store = _add(ContextData(), "system",
                 "<phase_prompt>\n## Strategy\n<read_file><path>example</path></read_file>\n</phase_prompt>",
                 phase="strategy")

    instruction = store.latest_phase_instruction()
    assert instruction.phase == "strategy"
    assert instruction.content.startswith("## Strategy")
    # Examples inside the prompt are not operations, and the block is not history
    assert store.file_operations == {}
    assert store.conversation_history == ()


def test_only_one_phase_instruction_is_live():
    store = _add(ContextData(), "system", "<phase_prompt>one</phase_prompt>", phase="discovery")
    store = _add(store, "system", "<phase_prompt>two</phase_prompt>", phase="strategy")

    assert list(store.phase_instructions) == ["strategy"]


def test_message_context_order():
    store = builder.set_system_instructions(ContextData(), "SYS")
    store = _add(store, "system", "<phase_prompt>PHASE</phase_prompt>")
    store = _add(store, "user", "task")
    store = builder.record_operation_result(store, OP_READ, "a.py", True, content="A")
    store = builder.record_operation_result(store, OP_COMMAND, "ls", False, error="exit 1", content="out")

    messages = builder.get_message_context(store)

    assert messages[0] == {"role": "system", "content": "SYS"}
    assert messages[1] == {"role": "system", "content": "<phase_prompt>PHASE</phase_prompt>"}
    assert messages[2]["content"] == "[SUCCESS] read_file: a.py\nContent of a.py:\nA"
    assert messages[3]["content"] == "[FAILED] execute_command: ls\nError: exit 1\nCommand: ls\nOutput:\nout"
    assert messages[4] == {"role": "user", "content": "task"}


def test_cleanup_phase_content():
    store = _add(ContextData(), "system", "<phase_prompt>P</phase_prompt>")
    store = _add(store, "user", "before <phase_prompt>old</phase_prompt> after")
    store = builder.cleanup_phase_content(store)

    assert store.phase_instructions == {}
    assert [m.content for m in store.conversation_history] == ["before  after"]


def test_strip_annotations():
    assert strip_annotations("a <!-- note --> b") == "a  b"
    assert strip_annotations("x\n<!-- one -->\n\n\n\ny") == "x\n\ny"


def test_cleanup_is_a_noop_within_budget():
    store = _add(ContextData(), "user", "short")

    cleaned, dropped = cleanup_context(store, 1000)

    assert cleaned is store
    assert dropped is False


def test_eviction_keeps_newest_messages_within_budget():
    store = builder.set_system_instructions(ContextData(), "S" * 40)  # 10 tokens
    for index in range(10):
        store = _add(store, "user", f"{index}" * 40)  # 10 tokens each

    cleaned, dropped = cleanup_context(store, 45)

    assert dropped is True
    assert cleaned.system_instructions == store.system_instructions
    assert [m.content[0] for m in cleaned.conversation_history] == ["7", "8", "9"]
    assert count_tokens(cleaned) <= 45


def test_eviction_always_keeps_the_newest_message():
    store = _add(ContextData(), "user", "old")
    store = _add(store, "user", "x" * 400)

    cleaned, dropped = cleanup_context(store, 10)

    assert dropped is True
    assert [m.content for m in cleaned.conversation_history] == ["x" * 400]


def test_eviction_that_cannot_shrink_reports_nothing_dropped():
    store = _add(ContextData(), "user", "x" * 400)

    cleaned, dropped = cleanup_context(store, 10)

    assert dropped is False
    assert len(cleaned.conversation_history) == 1


def test_eviction_drops_old_operations_first():
    store = ContextData()
    store = builder.record_operation_result(store, OP_READ, "old.py", True, content="o" * 200)
    store = builder.record_operation_result(store, OP_READ, "new.py", True, content="n" * 40)
    store = _add(store, "user", "task")

    cleaned, _ = cleanup_context(store, 30)

    assert "new.py" in cleaned.file_operations
    assert "old.py" not in cleaned.file_operations


def test_eviction_strips_annotations_from_kept_text():
    store = _add(ContextData(), "system", "<phase_prompt>Do it <!-- internal --> now</phase_prompt>")
    store = _add(store, "user", "a" * 400)

    cleaned, dropped = cleanup_context(store, 112)

    # fits once the annotation is gone, so nothing counts as dropped
    assert dropped is False
    assert "internal" not in cleaned.latest_phase_instruction().content
    assert len(cleaned.conversation_history) == 1


def test_holder_swaps_snapshots():
    holder = ContextHolder()
    before = holder.snapshot
    holder.add_message("user", "hi")

    assert before.conversation_history == ()
    assert holder.snapshot.conversation_history[0].content == "hi"
    assert holder.messages() == [{"role": "user", "content": "hi"}]


def test_holder_keys_phase_instructions_by_current_phase():
    holder = ContextHolder(phase_provider=lambda: "execute")
    holder.add_message("system", "<phase_prompt>go</phase_prompt>")

    assert list(holder.snapshot.phase_instructions) == ["execute"]


def test_holder_serializes_concurrent_results():
    holder = ContextHolder()

    def record(index):
        holder.record_result(OP_READ, f"f{index}.py", True)

    threads = [threading.Thread(target=record, args=(i,)) for i in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(holder.snapshot.file_operations) == 20


def test_holder_cleanup_and_clear():
    holder = ContextHolder()
    holder.set_system_instructions("S")
    for index in range(5):
        holder.add_message("user", f"{index}" * 100)

    assert holder.cleanup(60) is True
    assert holder.total_tokens() <= 60

    holder.clear()
    assert holder.snapshot == ContextData()
