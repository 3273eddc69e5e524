#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Prompt generators for the Discovery, Strategy and Execute phases.

Each generator returns a block wrapped in ``<phase_prompt>`` so the context
builder can find it, store it as the live phase instruction and strip it
again on the next transition. The ``<!-- -->`` annotations are dropped by
the evictor when the context is trimmed.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class PhasePromptArgs:
    """Inputs shared by every phase prompt generator."""
    message: str = ""
    environment_details: Optional[str] = None
    project_info: Optional[str] = None
    run_all_tests_cmd: Optional[str] = None
    run_one_test_cmd: Optional[str] = None
    run_typecheck_cmd: Optional[str] = None


DEFAULT_RUN_ALL_TESTS_CMD = "pytest"
DEFAULT_RUN_ONE_TEST_CMD = "pytest {testPath}"
DEFAULT_RUN_TYPECHECK_CMD = "mypy ."


def _commands(args: PhasePromptArgs) -> str:
    return (
        f"- Run all tests: {args.run_all_tests_cmd or DEFAULT_RUN_ALL_TESTS_CMD}\n"
        f"- Run a specific test: {args.run_one_test_cmd or DEFAULT_RUN_ONE_TEST_CMD}\n"
        f"- Run type check: {args.run_typecheck_cmd or DEFAULT_RUN_TYPECHECK_CMD}"
    )


_READ_FILE_EXAMPLE = """<read_file>
  <path>path/here</path>
  <!-- Multiple <path> tags allowed. Use relative paths. -->
</read_file>"""

_WRITE_FILE_EXAMPLE = """<write_file>
  <path>path/here</path>
  <content>
    <!-- Full file content, raw text. -->
  </content>
</write_file>"""

_SEARCH_EXAMPLES = """<search_string>
  <directory>path/to/search</directory>
  <term>pattern to search</term>
</search_string>

<search_file>
  <directory>path/to/search</directory>
  <term>filename pattern</term>
</search_file>"""

_RELATIVE_PATH_EXAMPLE = """<relative_path_lookup>
  <!-- source_path is the file containing the broken import -->
  <source_path>path/to/source/file.py</source_path>
  <path>../relative/path/to/fix</path>
  <threshold>0.6</threshold>
</relative_path_lookup>"""


def discovery_prompt(args: PhasePromptArgs) -> str:
    environment = "\n\n".join(part for part in (args.project_info, args.environment_details) if part)
    return f"""
<phase_prompt>
## Discovery Phase

### Critical
- Briefly say what you are doing first, then trigger the action.
- Start with read_file. Do not end the phase in the same reply as your first read.
- When asked to fix tests, run the failing test with execute_command first. Prefer a single test or folder over the whole suite.
- Read the files most likely to hold what you need, then follow their imports.

### Objective
Understand the code involved in the task: find the relevant files, read them,
run tests or type checks if needed, then move on with end_phase.

### Example
To fix the parser I need to read these files:

<read_file>
  <path>src/parser.py</path>
  <path>tests/test_parser.py</path>
</read_file>

<!-- Next reply, once the files were read: -->
I have enough context now.

<end_phase>
  strategy_phase
</end_phase>

## Available Actions
<!-- ONE action per reply. -->

{_READ_FILE_EXAMPLE}

<execute_command>
<!-- Any command like "ls -la". Do not install dependencies unless allowed. -->
</execute_command>

{_SEARCH_EXAMPLES}

{_RELATIVE_PATH_EXAMPLE}

<fetch_url>
  <url>https://url/should/be/here</url>
</fetch_url>

<end_phase>
  <!-- Only once you have the context you need. -->
</end_phase>

### Useful Commands
{_commands(args)}

## Environment
{environment}
</phase_prompt>
"""


def strategy_prompt(args: PhasePromptArgs) -> str:
    return f"""
<phase_prompt>
<!-- Internal instructions. Do not output. -->
## Strategy Phase

### Objective
Plan the solution from the discovery findings and hand clear steps to the next phase.

### Critical
- One strategy, numbered steps
- No re-exploration; rely on what discovery found
- At most one write_file, then end_phase
- Full code only, never elide lines with comments
- Code goes inside write_file only, no Markdown fences

### Shape
1. Goal
2. Dependencies
3. Implementation steps
4. Edge cases
5. Tests
6. end_phase

## Available Actions

{_WRITE_FILE_EXAMPLE}

<end_phase>
  execute_phase
</end_phase>

### Useful Commands
{_commands(args)}
</phase_prompt>
"""


def execute_prompt(args: PhasePromptArgs) -> str:
    project = f"\n## Project Context\n{args.project_info}\n" if args.project_info else ""
    return f"""
<phase_prompt>
<!-- Internal instructions. Just follow them. Do not output. -->
## Execute Phase

### Critical
- Run the specific test after each change
- Run all tests only before end_task
- Read files only when stuck
- Full code only, never elide lines with comments

### Flow
1. Follow the strategy steps in order
2. One action per reply
3. Change code with write_file or edit_file
4. After each change run the specific test and the type check
5. When everything passes, run all tests, then end_task

## Available Actions

{_READ_FILE_EXAMPLE}

{_WRITE_FILE_EXAMPLE}

<edit_file>
  <changes>
    <file>
      <path>path/here</path>
      <replace>
        <pattern>regex to replace</pattern>
        <content>new text</content>
      </replace>
    </file>
  </changes>
</edit_file>

<execute_command>
<!-- Any command. Use the project's tooling, no new dependencies. -->
</execute_command>

{_SEARCH_EXAMPLES}

{_RELATIVE_PATH_EXAMPLE}

<delete_file>
  <path>path/here</path>
</delete_file>

<move_file>
  <source_path>source/path</source_path>
  <destination_path>destination/path</destination_path>
</move_file>

<copy_file_slice>
  <source_path>source/path</source_path>
  <destination_path>destination/path</destination_path>
</copy_file_slice>

<end_task>
  Summarize what was done.
</end_task>

### Commands
{_commands(args)}
{project}</phase_prompt>
"""
