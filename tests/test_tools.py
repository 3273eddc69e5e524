"""Tests for the local workspace tools: files, commands, search, paths, project info and fetch."""

import json
import shlex
import sys
from unittest.mock import Mock, patch

import pytest
import requests

from tagrunner.tools.command_runner import ShellCommandRunner, strip_ansi
from tagrunner.tools.file_ops import LocalFileOperations
from tagrunner.tools.path_adjuster import PathAdjuster
from tagrunner.tools.project_info import format_project_info, gather_project_info, get_environment_details
from tagrunner.tools.search import LocalSearchProvider
from tagrunner.tools.web_tools import fetch_url, html_to_text


# ---------------------------------------------------------------------------
# File operations
# ---------------------------------------------------------------------------

@pytest.fixture
def files(workspace):
    return LocalFileOperations(workspace)


def test_paths_outside_the_workspace_are_refused(files, workspace):
    result = files.write("../outside.txt", "x")

    assert not result.success
    assert "Path escapes workspace" in result.error
    assert not (workspace.parent / "outside.txt").exists()
    assert not files.exists("../../etc/passwd")


def test_read_and_read_multiple(files):
    assert files.read("README.md").data == "hello\n"
    assert "File not found" in files.read("nope.txt").error
    assert "directory" in files.read("src").error

    partial = files.read_multiple(["README.md", "nope.txt"])
    assert not partial.success
    assert partial.data == {"README.md": "hello\n"}


def test_write_creates_parent_directories(files, workspace):
    result = files.write("pkg/sub/mod.py", "X = 1\n")

    assert result.success
    assert result.data == {"path": "pkg/sub/mod.py", "bytes": 6}
    assert (workspace / "pkg" / "sub" / "mod.py").read_text() == "X = 1\n"


def test_move_copy_delete_and_stats(files, workspace):
    assert files.copy("src/util.py", "src/util_copy.py").success
    assert files.move("src/util_copy.py", "lib/util.py").data == {"moved": "src/util_copy.py", "to": "lib/util.py"}
    assert (workspace / "lib" / "util.py").read_text() == "VALUE = 1\n"

    stats = files.stats("lib/util.py").data
    assert stats["is_file"] and stats["size"] == 10

    assert files.delete("lib/util.py").success
    assert "File not found" in files.delete("lib/util.py").error
    assert "Cannot delete directory" in files.delete("src").error


def test_edit_applies_operations_in_order(files, workspace):
    result = files.edit("src/app.py", [
        {"type": "replace", "pattern": "'hello'", "content": "'hi'"},
        {"type": "insert_before", "pattern": "^def greet", "content": "# greeting\n"},
        {"type": "insert_after", "pattern": "'hi'", "content": "  # short"},
    ])

    assert result.success
    assert (workspace / "src" / "app.py").read_text() == "# greeting\ndef greet():\n    return 'hi'  # short\n"


def test_edit_is_all_or_nothing(files, workspace):
    result = files.edit("src/app.py", [
        {"type": "delete", "pattern": "return"},
        {"type": "replace", "pattern": "does-not-exist", "content": "x"},
    ])

    assert not result.success
    assert "Pattern not found" in result.error
    assert (workspace / "src" / "app.py").read_text() == "def greet():\n    return 'hello'\n"
    assert "Invalid pattern" in files.edit("src/app.py", [{"type": "replace", "pattern": "(", "content": ""}]).error


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _python(code):
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


def test_command_output_is_captured(workspace):
    runner = ShellCommandRunner(cwd=workspace, allow_shell=False)

    result = runner.run(_python("print(sorted(__import__('os').listdir('.')))"))

    assert result.returncode == 0
    assert "README.md" in result.stdout
    assert result.stderr == ""


def test_quoted_semicolons_still_count_as_composition(workspace):
    result = ShellCommandRunner(cwd=workspace, allow_shell=False).run(_python("import os; print(1)"))

    assert result.returncode == -1


def test_shell_composition_is_blocked(workspace):
    runner = ShellCommandRunner(cwd=workspace, allow_shell=False)

    for command in ("ls && rm -rf .", "cat a | grep b", "echo $(whoami)", "echo hi > out.txt"):
        result = runner.run(command)
        assert result.returncode == -1
        assert result.stderr.startswith("Command blocked")
    assert not (workspace / "out.txt").exists()


def test_missing_executable(workspace):
    result = ShellCommandRunner(cwd=workspace, allow_shell=False).run("definitely-not-a-real-tool --help")

    assert result.returncode == 127
    assert "command not found" in result.stderr


def test_non_zero_exit_code_is_reported(workspace):
    result = ShellCommandRunner(cwd=workspace, allow_shell=False).run(_python("raise SystemExit(3)"))

    assert result.returncode == 3


def test_timeout_kills_the_process(workspace):
    runner = ShellCommandRunner(cwd=workspace, timeout=1, allow_shell=False)

    result = runner.run(_python("__import__('time').sleep(10)"))

    assert result.timed_out
    assert result.returncode == -1
    assert "exceeded 1s timeout" in result.output


def test_strip_ansi():
    assert strip_ansi("\x1b[31mred\x1b[0m plain") == "red plain"


# ---------------------------------------------------------------------------
# Search and path correction
# ---------------------------------------------------------------------------

def test_search_by_content(workspace):
    (workspace / ".git").mkdir()
    (workspace / ".git" / "HEAD").write_text("hello from git\n")
    search = LocalSearchProvider(workspace)

    matches = search.find_by_content(".", "HELLO")

    assert sorted((m.path, m.line) for m in matches) == [("README.md", 1), ("src/app.py", 2)]
    # Invalid regexes fall back to a literal search
    assert [m.path for m in search.find_by_content("src", "greet(")] == ["src/app.py"]


def test_search_by_name(workspace):
    search = LocalSearchProvider(workspace)

    assert [m.path for m in search.find_by_name(".", "*.py")] == ["src/app.py", "src/util.py"]
    assert [m.path for m in search.find_by_name("src", "UTIL")] == ["src/util.py"]


def test_search_respects_match_limit(workspace):
    (workspace / "many.txt").write_text("hit\n" * 50)

    assert len(LocalSearchProvider(workspace, max_matches=5).find_by_content(".", "hit")) == 5


def test_path_adjuster_fixes_typos(workspace):
    adjuster = PathAdjuster(workspace)

    assert adjuster.adjust_path(str(workspace / "src" / "utl.py")) == str((workspace / "src" / "util.py").resolve())
    assert adjuster.adjust_path(str(workspace / "zzzz" / "qqqqqqqq.cfg")) is None


def test_lookup_relative_from_sibling(workspace):
    adjuster = PathAdjuster(workspace)

    fixed = adjuster.lookup_relative("src/util.py", "./ap.py")

    assert fixed["original_path"] == "./ap.py"
    assert fixed["new_path"] == "./app.py"


# ---------------------------------------------------------------------------
# Project info
# ---------------------------------------------------------------------------

def test_requirements_are_summarized(workspace, monkeypatch):
    from tagrunner import config
    monkeypatch.setattr(config, "RUN_ALL_TESTS_CMD", "tox")
    (workspace / "requirements.txt").write_text("requests>=2.31\n# comment\nPyYAML==6.0\n-e .\n")

    info = gather_project_info(workspace)
    text = format_project_info(info)

    assert info.main_dependencies == ["requests", "PyYAML"]
    assert text.startswith("# Project Dependencies (from requirements.txt)")
    assert "Run All Tests: tox" in text


def test_package_json_wins_over_requirements(workspace):
    (workspace / "requirements.txt").write_text("requests\n")
    (workspace / "package.json").write_text(json.dumps({
        "dependencies": {"react": "^18"},
        "devDependencies": {"jest": "^29"},
        "scripts": {"test": "jest"},
    }))

    info = gather_project_info(workspace)

    assert info.dependency_file == "package.json"
    assert info.main_dependencies == ["react", "jest"]
    assert info.scripts == {"test": "jest"}


def test_no_manifest_gives_empty_summary(workspace):
    assert format_project_info(gather_project_info(workspace)) == ""


def test_environment_details_listing(workspace):
    full = get_environment_details(workspace)
    assert full.splitlines()[1:] == ["README.md", "src/app.py", "src/util.py"]

    truncated = get_environment_details(workspace, line_limit=2)
    assert truncated.endswith("[Content truncated...]")


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------

def _http_response(text, content_type="text/plain"):
    response = Mock()
    response.text = text
    response.status_code = 200
    response.headers = {"Content-Type": content_type}
    response.raise_for_status.return_value = None
    return response


def test_fetch_reduces_html_to_text():
    page = "<html><script>var x;</script><body><h1>Title</h1><p>Body</p></body></html>"

    with patch("tagrunner.tools.web_tools.requests.get", return_value=_http_response(page, "text/html")):
        result = fetch_url("https://example.com")

    assert result.success
    assert result.data["content"] == "TitleBody"
    assert result.data["truncated"] is False


def test_fetch_truncates_large_bodies():
    with patch("tagrunner.tools.web_tools.requests.get", return_value=_http_response("x" * 100)):
        result = fetch_url("https://example.com/big", max_bytes=10)

    assert result.data["truncated"] is True
    assert result.data["content"].startswith("x" * 10 + "\n...[truncated]")


def test_fetch_failures_are_returned():
    with patch("tagrunner.tools.web_tools.requests.get",
               side_effect=requests.ConnectionError("dns failure")):
        result = fetch_url("https://nowhere.invalid")

    assert not result.success
    assert "ConnectionError" in result.error


def test_html_to_text_collapses_blank_lines():
    assert html_to_text("<p>a</p>\n\n\n<p>b</p>") == "a\n\nb"


def test_html_to_text_keeps_comparisons_and_decodes_entities():
    text = html_to_text("<p>if a < b and c > d then x &amp; y</p><style>p { color: red; }</style>")

    assert text == "if a < b and c > d then x & y"
