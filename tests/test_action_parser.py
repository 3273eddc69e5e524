"""Tests for typed field extraction, dependency inference and plan layering."""

import pytest

from tagrunner.actions.parser import ActionParser, normalize_path
from tagrunner.errors import FormatError, ValidationError


def _ids(plan):
    return [[action.action_type for action in group.actions] for group in plan.groups]


def test_independent_reads_form_one_parallel_group():
    plan = ActionParser().parse(
        "<read_file><path>a.py</path></read_file>"
        "<read_file><path>b.py</path></read_file>"
    )

    assert len(plan.groups) == 1
    assert plan.groups[0].parallel is True
    assert [a.fields["path"] for a in plan.actions] == [["a.py"], ["b.py"]]


def test_write_then_delete_of_same_path_is_sequenced():
    plan = ActionParser().parse(
        "<write_file><path>tmp.txt</path><content>x</content></write_file>"
        "<delete_file><path>./tmp.txt</path></delete_file>"
    )

    assert len(plan.groups) >= 2
    assert _ids(plan) == [["write_file"], ["delete_file"]]
    write, delete = plan.actions
    assert write.action_id in delete.depends_on


def test_write_echoing_a_read_body_waits_for_the_read():
    plan = ActionParser().parse(
        "<read_file><path>src/a.py</path></read_file>"
        "<write_file><path>notes.md</path><content>\n"
        "Read with <path>src/a.py</path> first\n"
        "</content></write_file>"
    )

    read, write = plan.actions
    assert read.action_id in write.depends_on
    assert _ids(plan) == [["read_file"], ["write_file"]]


def test_write_to_a_path_being_read_waits_for_the_read():
    plan = ActionParser().parse(
        "<read_file><path>src/a.py</path></read_file>"
        "<write_file><path>src/a.py</path><content>new</content></write_file>"
    )

    assert _ids(plan) == [["read_file"], ["write_file"]]


def test_unrelated_write_runs_in_the_first_wave():
    plan = ActionParser().parse(
        "<read_file><path>src/a.py</path></read_file>"
        "<write_file><path>other.py</path><content>x = 1</content></write_file>"
    )

    assert len(plan.groups) == 1
    # write_file is not parallel-safe, so the wave runs sequentially
    assert plan.groups[0].parallel is False


def test_end_task_waits_for_everything_before_it():
    plan = ActionParser().parse(
        "<read_file><path>a.py</path></read_file>"
        "<search_file><directory>.</directory><term>*.py</term></search_file>"
        "<end_task>done</end_task>"
    )

    assert _ids(plan)[-1] == ["end_task"]
    end_task = plan.actions[-1]
    assert end_task.depends_on == {a.action_id for a in plan.actions[:-1]}
    assert end_task.fields == {"message": "done"}


def test_two_mutating_actions_never_share_a_parallel_group():
    plan = ActionParser().parse(
        "<copy_file_slice><source_path>a</source_path><destination_path>b</destination_path></copy_file_slice>"
        "<copy_file_slice><source_path>c</source_path><destination_path>d</destination_path></copy_file_slice>"
    )

    assert len(plan.groups) == 1
    assert plan.groups[0].parallel is False


def test_one_mutating_action_may_run_with_readers():
    plan = ActionParser().parse(
        "<read_file><path>x</path></read_file>"
        "<copy_file_slice><source_path>a</source_path><destination_path>b</destination_path></copy_file_slice>"
    )

    assert plan.groups[0].parallel is True


def test_execute_command_accepts_plain_or_nested_command():
    plan = ActionParser().parse(
        "<execute_command>  ls -la  </execute_command>"
        "<execute_command><command>pytest -q</command></execute_command>"
    )

    assert [a.fields["command"] for a in plan.actions] == ["ls -la", "pytest -q"]


def test_missing_required_field_is_stored_on_the_action():
    plan = ActionParser().parse("<write_file><path>a.txt</path></write_file>")

    action = plan.actions[0]
    assert isinstance(action.error, ValidationError)
    assert "content" in str(action.error)


def test_invalid_url_and_threshold_are_rejected():
    plan = ActionParser().parse(
        "<fetch_url><url>ftp://example.com</url></fetch_url>"
        "<relative_path_lookup><source_path>a.py</source_path><path>../b</path>"
        "<threshold>2</threshold></relative_path_lookup>"
    )

    assert all(isinstance(a.error, ValidationError) for a in plan.actions)


def test_relative_path_lookup_defaults_threshold():
    plan = ActionParser().parse(
        "<relative_path_lookup><source_path>a.py</source_path><path>../b</path></relative_path_lookup>"
    )

    assert plan.actions[0].fields["threshold"] == pytest.approx(0.6)


def test_edit_file_changes_keep_source_order():
    plan = ActionParser().parse(
        "<edit_file><changes><file><path>a.py</path>"
        "<replace><pattern>foo</pattern><content>bar</content></replace>"
        "<delete><pattern>baz</pattern></delete>"
        "<insert_after><pattern>bar</pattern><content>!</content></insert_after>"
        "</file></changes></edit_file>"
    )

    change = plan.actions[0].fields["changes"][0]
    assert change["path"] == "a.py"
    assert [op["type"] for op in change["operations"]] == ["replace", "delete", "insert_after"]
    assert change["operations"][1]["content"] is None


def test_nesting_violation_yields_plan_error():
    plan = ActionParser().parse("<read_file><end_task>x</end_task></read_file>")

    assert not plan
    assert isinstance(plan.error, FormatError)


def test_action_ids_are_unique_across_calls():
    parser = ActionParser()
    first = parser.parse("<read_file><path>a</path></read_file>").actions[0]
    second = parser.parse("<read_file><path>b</path></read_file>").actions[0]

    assert first.action_id != second.action_id
    assert first.action_id.startswith("read_file-")


def test_normalize_path():
    assert normalize_path(" ./src//a.py ") == "src/a.py"
