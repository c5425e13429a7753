# SPDX-FileCopyrightText: Copyright (c) The helly25/mbo authors (helly25.com)
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""The sub-command framework used by the `sfnstats` programs.

For details read class `Command` documentation. Usage example:

```
#!/bin/env python3

import argparse

from sfnstats.app.commands import Command, Print

class CountStates(Command):
    \"\"\"Counts the given states.\"\"\"

    def __init__(self, parser: argparse.ArgumentParser):
        super(CountStates, self).__init__(parser)
        parser.add_argument("states", nargs="*")

    def Main(self):
        Print(f"{len(self.args.states)} states.")

if __name__ == "__main__":
    Command.Run()
```

Assuming the above is saved as `example.py`:

```
./example.py count_states Pass Wait
```

Outputs: `2 states.`
"""

import argparse
import bz2
import dataclasses
import gzip
import inspect
import io
import re
import sys
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Type, cast

from argparse_formatter import ParagraphFormatter

if TYPE_CHECKING:
    from _typeshed import OpenTextMode
else:
    OpenTextMode = str


def Die(message: Any, exit_code: int = 1):
    print(f"FATAL: {message}", flush=True, file=sys.stderr)
    sys.exit(exit_code)


def Log(message: Any = "", end="\n", flush=True, file=None):
    print(message, end=end, flush=flush, file=file or sys.stderr)


def Print(message: Any = "", end="\n", flush=False, file=None):
    print(message, end=end, flush=flush, file=file or sys.stdout)


def OpenTextFile(
    filename: Path,
    mode: OpenTextMode,
    encoding: str = "utf-8",
    newline: Optional[str] = None,
) -> io.TextIOWrapper:
    """Opens `filename` in `mode`, supporting '.gz' and '.bz2' files.

    Args:
        filename: The `Path` to be opened.
        mode:     The text mode to open the file with (e.g. 'rt, 'wt').
                  Modes `r` and `w` are automatically extended to `rt` and `wt`
                  respectively.
        encoding: The text encoding to use.
        newline:  Newline translation as for `open`. CSV files must be opened
                  with `newline=""`.

    Returns:
        The opened file as a `io.TextIOWrapper`.
    """
    if mode == "r":
        mode = "rt"
    elif mode == "w":
        mode = "wt"
    filename = Path(filename)
    # Typeshed does not know that GZipFile and Bz2File use `io.TextIOWrapper` in text mode.
    if filename.suffix == ".gz":
        return cast(
            io.TextIOWrapper,
            gzip.open(filename=filename, mode=mode, encoding=encoding, newline=newline),
        )
    if filename.suffix == ".bz2":
        return cast(
            io.TextIOWrapper,
            bz2.open(filename=filename, mode=mode, encoding=encoding, newline=newline),
        )
    return filename.open(mode=mode, encoding=encoding, newline=newline)


def SnakeCase(text: str) -> str:
    """Convert `text` to snake_case.

    Replace dashes with spaces, then use regular expressions to split on words
    and acronyms, separate them by space. Then join the words with underscores,
    remove duplicate underscores and convert the result to lowercase.

    Args:
        text:   The input text to convert.

    Returns:
        The Snake-Case version of `text`.
    """
    text = "_".join(re.sub("([A-Z]+[a-z]*)", r" \1", text.replace("-", " ")).split())
    return re.sub("_+", "_", text).lower()


def DocOutdent(text: str) -> str:
    """Removes the common indentation of all but the first line of `text`."""
    if not text:
        return text
    result = []
    lines = text.strip("\n").rstrip().split("\n")
    if not lines[0].startswith(" "):
        result.append(lines[0])
        lines.pop(0)
    min_indent = -1
    for line in lines:
        if line.strip():
            indent = len(line) - len(line.lstrip())
            if min_indent == -1 or indent < min_indent:
                min_indent = indent
    prefix = " " * max(min_indent, 0)
    for line in lines:
        result.append(line.removeprefix(prefix) if line.strip() else "")
    return "\n".join(result)


class ActionEnum(argparse.Action):
    """Argparse action that handles single Enum values."""

    def __init__(self, **kwargs):
        enum_type = kwargs.pop("type", None)
        if enum_type is None or not issubclass(enum_type, Enum):
            raise ValueError(f"Type must be an Enum, provided type is '{enum_type}'.")
        kwargs.setdefault("choices", tuple(e.value for e in enum_type))
        super(ActionEnum, self).__init__(**kwargs)
        self._enum = enum_type

    def __call__(self, parser, namespace, values, option_string=None):
        setattr(namespace, self.dest, self._enum(values))


class HelpOutputMode(Enum):
    TEXT = "text"
    MARKDOWN = "markdown"


class CommandParagraphFormatter(ParagraphFormatter):
    """A Paragraph formatter that can control TEXT and MARKDOWN formatting.

    Blocks fenced by '```' are kept verbatim in either mode.
    """

    _help_output_mode: HelpOutputMode = HelpOutputMode.TEXT

    @classmethod
    def SetOutputMode(cls, output_mode: HelpOutputMode):
        cls._help_output_mode = output_mode

    def IsOutputMode(self, output_mode: HelpOutputMode) -> bool:
        return self._help_output_mode == output_mode

    def _fill_text(self, text: str, width: int, indent: str) -> str:
        indent = indent[:4]
        keep = False
        sub_text = ""
        result = ""
        for line in text.split("\n"):
            if line.startswith("```"):
                if not keep and sub_text:
                    result += super(CommandParagraphFormatter, self)._fill_text(
                        sub_text, width, indent
                    )
                    result += "\n\n"
                    sub_text = ""
                result += line + "\n"
                keep = not keep
            elif keep:
                result += line + "\n"
            else:
                sub_text += line + "\n"
        if sub_text:
            result += super(CommandParagraphFormatter, self)._fill_text(
                sub_text, width, indent
            )
        return result

    def _format_action_invocation(self, action) -> str:
        result = super(CommandParagraphFormatter, self)._format_action_invocation(
            action
        )
        if self.IsOutputMode(HelpOutputMode.MARKDOWN):
            return "\n`" + result + "`\n\n"
        return result

    def _format_usage(self, usage, actions, groups, prefix):
        if self.IsOutputMode(HelpOutputMode.MARKDOWN) and not prefix:
            prefix = "### usage:"
        return super(CommandParagraphFormatter, self)._format_usage(
            usage, actions, groups, prefix
        )

    def start_section(self, heading: str | None) -> None:
        if self.IsOutputMode(HelpOutputMode.MARKDOWN) and heading:
            heading = f"### {heading}"
        super(CommandParagraphFormatter, self).start_section(heading)


class Command(ABC):
    """Abstract base class to implement programs with sub-commands.

    A sub-command is identified by the first command-line argument which is
    matched against all registered non-abstract `Command` implementations. They
    must override `Main` which implements the sub-command.

    The `__init__` function of every registered Command is executed on each
    run and thus must not contain expensive initialization (e.g. creating AWS
    sessions). Such work belongs into `Prepare`, which is only called for the
    command that actually runs and has access to the parsed `self.args`.
    Intermediate abstract Command classes that share functionality (e.g. the
    AWS profile handling) override `Prepare` and `__init__` alike.

    All derived Command classes that are not abstract register themselves. The
    sub-command name is the snake_case version of the class name, its
    description is the class's document string. In the example at the top the
    class `CountStates` becomes sub-command `count_states`.
    """

    @dataclasses.dataclass
    class CommandData:
        command_type: Any
        command: Any = None
        sub_parser: argparse.ArgumentParser | None = None

    _commands: dict[str, CommandData] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if not inspect.isabstract(cls):
            cls._commands[cls.name()] = Command.CommandData(command_type=cls)

    def __init__(self, parser: argparse.ArgumentParser):
        parser.description = self.description()
        self.args: argparse.Namespace

    @classmethod
    def name(cls):
        return SnakeCase(cls.__name__)

    @classmethod
    def description(cls):
        return DocOutdent(cls.__doc__ or "")

    def Prepare(self) -> None:
        """Prepare the command for execution after parsing the command line."""
        pass

    @abstractmethod
    def Main(self):
        pass

    @staticmethod
    def Run(argv: list[str] = sys.argv):
        program = argv[0] if argv else "-"
        match = re.fullmatch(r"(?:.*/)?([^/]+)/([^/]+)[.]py", program)
        if match and match.group(2) != "__main__":
            program = f"python -m {match.group(1)}.{match.group(2)}"

        parser = argparse.ArgumentParser(
            prog=program,
            formatter_class=CommandParagraphFormatter,
        )
        parser.add_argument(
            "--swallow_exceptions",
            action=argparse.BooleanOptionalAction,
            help="Whether to only show the error message of exceptions instead of a traceback.",
        )
        parser.add_argument(
            "--help_output_mode",
            "--help-output-mode",
            dest="help_output_mode",
            default=HelpOutputMode.TEXT,
            type=HelpOutputMode,
            action=ActionEnum,
            help="Output mode for help.",
        )

        subparsers = parser.add_subparsers(
            dest="command",
            title="COMMAND",
            metavar="COMMAND",
            help=(
                f"The sub-command: {{{', '.join(Command._commands.keys())}}}.\n\n"
                f"Use `{program} help` to get an overview of all commands."
            ),
        )
        for command_name, command_data in Command._commands.items():
            command_data.sub_parser = subparsers.add_parser(
                name=command_name,
                formatter_class=CommandParagraphFormatter,
            )
            command_data.command = command_data.command_type(
                parser=command_data.sub_parser
            )

        args = parser.parse_args(argv[1:])
        if not args.command or args.command not in Command._commands:
            # Reparse with just "help", so its defaults get populated.
            args = parser.parse_args(["help"], args)
            args.command = None

        command = Command._commands[args.command or "help"].command
        command.args = args
        CommandParagraphFormatter.SetOutputMode(args.help_output_mode)
        try:
            command.Prepare()
            command.Main()
        except KeyboardInterrupt:
            Die(message="Interrupted!", exit_code=130)
        except Exception as err:
            if command.args.swallow_exceptions:
                Die(err)
            raise


class Help(Command):
    """Provides help for the program."""

    def __init__(self, parser: argparse.ArgumentParser) -> None:
        super(Help, self).__init__(parser)
        self.parser = parser
        parser.add_argument(
            "--all_commands",
            action=argparse.BooleanOptionalAction,
            help="Whether to show the details of all commands.",
        )

    def _Header(self, text: str, level: int = 1):
        if self.args.help_output_mode == HelpOutputMode.MARKDOWN:
            Print(f"{'#' * level} {text.rstrip(':')}")
        else:
            Print(text)
        Print()

    def _Code(self, text: str):
        if self.args.help_output_mode == HelpOutputMode.MARKDOWN:
            Print(f"```\n{text}\n```")
        else:
            Print(f"  {text}")

    def Main(self) -> None:
        program = self.parser.prog.removesuffix("help").rstrip()
        program_doc = DocOutdent(str(sys.modules["__main__"].__doc__ or "").strip())
        first_line, _, details = program_doc.partition("\n\n")
        if first_line:
            Print(first_line)
            Print()
        self._Header("Usage:")
        self._Code(f"{program} <command> [args...]")
        Print()
        self._Header("Commands:", level=2)
        c_len = 3 + max([len(c) for c in Command._commands.keys()])
        for name, command_data in sorted(Command._commands.items()):
            description = command_data.command_type.description().split("\n\n")[0]
            Print(f"  {name + ':':{c_len}s}{description}")
        Print()
        if details:
            Print(details)
            Print()
        self._Header("For command specific help use:", level=2)
        self._Code(f"{program} <command> --help")
        if self.args.all_commands:
            for name, command_data in sorted(Command._commands.items()):
                Print()
                self._Header(f"Command {name}", level=2)
                if command_data.sub_parser:
                    command_data.sub_parser.usage = argparse.SUPPRESS
                    Print(command_data.sub_parser.format_help())
        sys.exit(0)
