import os
from pathlib import Path

from tagrunner.debug_logger import DebugLogger, get_logger, is_debug_enabled, prune_old_logs


def test_plain_logging_helpers_write_when_enabled(tmp_path: Path):
    logger = DebugLogger.initialize(enabled=True, log_dir=tmp_path)

    logger.info("info message")
    logger.warning("warn %s", "message")
    logger.error("error message")
    logger.debug("debug message")
    logger.close()

    log_file = logger.log_file_path
    assert log_file is not None
    assert log_file.exists()

    content = log_file.read_text()
    assert "tagrunner.general" in content
    assert "info message" in content
    assert "warn message" in content
    assert "error message" in content
    assert "debug message" in content


def test_plain_logging_helpers_are_noops_when_disabled(tmp_path: Path):
    logger = DebugLogger.initialize(enabled=False, log_dir=tmp_path)

    logger.info("info message")
    logger.log("parser", "EVENT", {"a": 1})
    logger.close()

    assert logger.log_file_path is None
    assert not any(tmp_path.iterdir())
    assert not is_debug_enabled()


def test_structured_events_carry_component_and_payload(tmp_path: Path):
    logger = DebugLogger.initialize(enabled=True, log_dir=tmp_path)

    logger.log("runner", "GROUP_FAILED", {"group": 2}, "WARNING")
    logger.log_action("read_file", "abc123", {"path": ["a.py"]}, success=False, error="missing")
    logger.log_error("llm", ValueError("bad payload"), {"model": "m"})
    logger.log_phase("strategy", {"model": "strat"})
    logger.close()

    content = logger.log_file_path.read_text()
    assert "tagrunner.runner" in content
    assert "[GROUP_FAILED]" in content
    assert '"group": 2' in content
    assert "tagrunner.actions" in content
    assert '"error": "missing"' in content
    assert '"error_type": "ValueError"' in content
    assert '"phase": "strategy"' in content
    assert "DEBUG_SESSION_END" in content


def test_initialize_keeps_the_first_instance(tmp_path: Path):
    first = DebugLogger.initialize(enabled=False, log_dir=tmp_path)
    second = DebugLogger.initialize(enabled=True, log_dir=tmp_path)

    assert first is second
    assert get_logger() is first


def test_reset_drops_the_instance(tmp_path: Path):
    first = DebugLogger.initialize(enabled=True, log_dir=tmp_path)
    DebugLogger.reset()

    assert get_logger() is not first
    assert not get_logger().enabled


def test_conversation_log_is_independent_of_debug(tmp_path: Path):
    logger = DebugLogger.initialize(enabled=False, log_dir=tmp_path, conversation_log=True)

    logger.log_conversation("user", "fix the bug")
    logger.log_conversation("assistant", "<read_file><path>a.py</path></read_file>")

    content = logger.conversation_log_path.read_text(encoding="utf-8")
    assert "==== USER" in content
    assert "fix the bug" in content
    assert "==== ASSISTANT" in content
    assert logger.log_file_path is None


def test_llm_request_is_truncated(tmp_path: Path):
    logger = DebugLogger.initialize(enabled=True, log_dir=tmp_path)

    logger.log_llm_request("m", [{"role": "user", "content": "x" * 2000}])
    logger.close()

    content = logger.log_file_path.read_text()
    assert '"message_count": 1' in content
    assert "x" * 500 in content
    assert "x" * 501 not in content


def test_prune_old_logs_keeps_newest(tmp_path: Path):
    for index in range(5):
        path = tmp_path / f"run_{index}.log"
        path.write_text("x")
        stamp = 1_000_000 + index
        os.utime(path, (stamp, stamp))

    prune_old_logs(tmp_path, keep=2)

    assert sorted(p.name for p in tmp_path.iterdir()) == ["run_3.log", "run_4.log"]
