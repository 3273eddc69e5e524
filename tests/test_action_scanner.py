"""Tests for the incremental action tag scanner."""

from tagrunner.actions.scanner import (
    ActionTagScanner,
    extract_all,
    extract_field,
    find_bare_action_name,
    find_unknown_tag,
    mask_opaque_regions,
    scan,
)
from tagrunner.errors import FormatError


def test_partial_tag_waits_for_the_rest_of_the_stream():
    scanner = ActionTagScanner()

    assert scanner.feed("Let me look. <read_f") == []
    assert not scanner.has_complete_tag()

    tags = scanner.feed("ile><path>a.py</path></read_file>")

    assert len(tags) == 1
    assert tags[0].tag == "read_file"
    assert tags[0].body == "<path>a.py</path>"
    assert tags[0].raw == "<read_file><path>a.py</path></read_file>"


def test_tag_is_returned_only_once():
    scanner = ActionTagScanner()
    first = scanner.feed("<read_file><path>a.py</path></read_file>")
    second = scanner.feed(" more text")

    assert len(first) == 1
    assert second == []


def test_identical_tag_repeated_later_is_suppressed():
    scanner = ActionTagScanner()
    raw = "<read_file><path>a.py</path></read_file>"
    scanner.feed(raw)

    assert scanner.feed("\nagain " + raw) == []


def test_tags_across_many_small_chunks():
    text = (
        "<read_file><path>a.py</path></read_file>\n"
        "<execute_command>pytest -q</execute_command>"
    )
    scanner = ActionTagScanner()
    found = []
    for index in range(0, len(text), 3):
        found.extend(scanner.feed(text[index:index + 3]))

    assert [tag.tag for tag in found] == ["read_file", "execute_command"]
    assert found[1].body == "pytest -q"


def test_nested_action_tags_fail_closed():
    scanner = ActionTagScanner()
    tags = scanner.feed("<read_file><write_file><path>x</path></write_file></read_file>")

    assert tags == []
    assert isinstance(scanner.error, FormatError)
    assert "cannot be nested" in str(scanner.error)
    # Stays closed until reset
    assert scanner.feed("<read_file><path>a</path></read_file>") == []
    assert scanner.has_format_error()

    scanner.reset()
    assert len(scanner.feed("<read_file><path>a</path></read_file>")) == 1


def test_check_reports_tag_and_error_state_together():
    scanner = ActionTagScanner()
    scanner.append("<read_file><path>a.py</path>")
    assert scanner.check() == (False, False)

    scanner.append("</read_file>")
    assert scanner.check() == (True, False)

    scanner.feed("")
    assert scanner.check() == (False, False)

    scanner.append("<read_file><write_file>")
    assert scanner.check() == (False, True)


def test_mismatched_closing_tag_is_a_format_error():
    result = scan("<read_file><path>a</path></write_file>")

    assert result.tags == []
    assert isinstance(result.error, FormatError)


def test_stray_closing_tag_is_a_format_error():
    result = scan("done </end_task>")

    assert result.error is not None
    assert "without a matching" in str(result.error)


def test_content_blocks_may_quote_action_tags():
    text = (
        "<write_file><path>doc.md</path><content>\n"
        "Use <read_file><path>x</path></read_file> to read.\n"
        "</content></write_file>"
    )
    result = scan(text)

    assert result.error is None
    assert [tag.tag for tag in result.tags] == ["write_file"]


def test_comments_and_phase_prompts_are_ignored():
    text = (
        "<phase_prompt><read_file><path>example</path></read_file></phase_prompt>\n"
        "<!-- <end_task>no</end_task> -->\n"
        "<read_file><path>real.py</path></read_file>"
    )
    tags = scan(text).tags

    assert len(tags) == 1
    assert "real.py" in tags[0].body


def test_mask_preserves_offsets():
    text = "a<content>xyz</content>b"
    masked = mask_opaque_regions(text)

    assert len(masked) == len(text)
    assert masked[0] == "a" and masked[-1] == "b"


def test_trim_keeps_tail_and_positions_stay_absolute():
    scanner = ActionTagScanner()
    scanner.feed("x" * 50)

    assert scanner.trim(max_size=40, keep=10)
    assert len(scanner.buffer) == 10

    tags = scanner.feed("<end_task>ok</end_task>")
    assert tags[0].start == 50


def test_extract_field_ignores_paths_inside_content():
    body = "<path>real.txt</path><content><path>quoted</path></content>"

    assert extract_all(body, "path") == ["real.txt"]
    assert extract_field(body, "content") == "<path>quoted</path>"
    assert extract_field(body, "missing") is None


def test_find_unknown_and_bare_names():
    assert find_unknown_tag("<foo>bar</foo>") == "foo"
    assert find_unknown_tag("<path>x</path>") is None
    assert find_bare_action_name("please read_file src/a.py") == "read_file"
    assert find_bare_action_name("<read_file><path>a</path></read_file>") is None
