#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# ****************************************************************************************************************************************************
# * BSD 3-Clause License
# *
# * Copyright (c) 2025, Mana Battery
# * All rights reserved.
# *
# * Redistribution and use in source and binary forms, with or without modification, are permitted provided that the following conditions are met:
# *
# * 1. Redistributions of source code must retain the above copyright notice, this list of conditions and the following disclaimer.
# * 2. Redistributions in binary form must reproduce the above copyright notice, this list of conditions and the following disclaimer in the
# *    documentation and/or other materials provided with the distribution.
# * 3. Neither the name of the copyright holder nor the names of its contributors may be used to endorse or promote products derived from this
# *    software without specific prior written permission.
# *
# * THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
# * THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
# * CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
# * PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
# * LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE,
# * EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
# ****************************************************************************************************************************************************
"""Compilation database loading and compile command canonicalization.

Each record of a compile_commands.json is turned into a CompileCommand: the
compiler, the flag list with the output (-o) and compile-only (-c) selections
stripped out, and the declared object file. The flag list is what the ninja
rules are keyed on, so two sources compiled with the same flags share rules.

Command strings are split on single spaces. Shell quoting is not interpreted,
so a quoted argument containing spaces is split into several tokens.
"""

import os
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from lib.constants import (
    OUTPUT_FLAG,
    COMPILE_ONLY_FLAG,
    EMIT_PCH_FLAG,
    INCLUDE_PCH_FLAG,
    XCLANG_FLAG,
    RecordError,
    MissingCommandError,
    IoError,
)

logger = logging.getLogger(__name__)


def _tokenize(record: Dict[str, Any]) -> Tuple[List[str], bool]:
    """Return the raw token list of a record, preferring 'arguments' over 'command'.

    Returns:
        Tuple of (tokens, whether the tokens came from 'arguments')
    """
    arguments = record.get("arguments")
    if arguments is not None:
        if not isinstance(arguments, list) or not all(isinstance(arg, str) for arg in arguments):
            raise RecordError(f"'arguments' must be a list of strings in record for {record.get('file')}")
        return list(arguments), True

    command = record.get("command")
    if command is None:
        raise MissingCommandError(f"No command or arguments field in record for {record.get('file')}")
    if not isinstance(command, str):
        raise RecordError(f"'command' must be a string in record for {record.get('file')}")
    return command.split(" "), False


def _take_flag_with_argument(tokens: List[str], flag: str, file: str) -> Tuple[bool, str]:
    """Remove the first occurrence of flag and its argument from tokens.

    Returns:
        Tuple of (found, argument)

    Raises:
        RecordError: If the flag is the last token
    """
    try:
        index = tokens.index(flag)
    except ValueError:
        return False, ""

    if index + 1 >= len(tokens):
        raise RecordError(f"Flag '{flag}' has no argument in command for {file}")

    argument = tokens[index + 1]
    del tokens[index : index + 2]
    return True, argument


@dataclass(frozen=True)
class CompileCommand:
    """A canonicalized compilation database entry.

    Attributes:
        directory: Working directory the command was recorded in
        file: Source file as recorded in the database
        compiler: First token of the command line
        flags: Remaining tokens without -o/-c selections
        output: Object file named by -o, or empty string
        from_arguments: Tokens are exact argv entries rather than pieces of a shell string
    """

    directory: str
    file: str
    compiler: str
    flags: Tuple[str, ...]
    output: str = ""
    from_arguments: bool = False

    @classmethod
    def from_raw(cls, record: Dict[str, Any]) -> "CompileCommand":
        """Canonicalize one raw compile_commands.json record.

        Args:
            record: Mapping with 'directory', 'file' and 'command' or 'arguments'

        Returns:
            CompileCommand for the record

        Raises:
            MissingCommandError: If neither 'command' nor 'arguments' is present
            RecordError: If the record is otherwise malformed
        """
        if not isinstance(record, dict):
            raise RecordError(f"Compilation database entry is not an object: {record!r}")

        file = record.get("file")
        directory = record.get("directory")
        if not isinstance(file, str) or not file:
            raise RecordError(f"Compilation database entry has no 'file': {record!r}")
        if not isinstance(directory, str):
            raise RecordError(f"Compilation database entry for {file} has no 'directory'")

        tokens, from_arguments = _tokenize(record)
        if not tokens or not tokens[0]:
            raise RecordError(f"Empty compile command for {file}")

        compiler = tokens.pop(0)

        _, output = _take_flag_with_argument(tokens, OUTPUT_FLAG, file)

        found_compile_flag, _ = _take_flag_with_argument(tokens, COMPILE_ONLY_FLAG, file)
        if not found_compile_flag and file in tokens:
            # Compile-and-link style command without -c: the source is a bare token
            tokens.remove(file)

        return cls(directory=directory, file=file, compiler=compiler, flags=tuple(tokens), output=output, from_arguments=from_arguments)

    def _resolve(self, path: str) -> str:
        return os.path.normpath(os.path.join(self.directory, path))

    def absolute_file(self) -> str:
        """Return the source path, resolved against the record directory when relative."""
        return self._resolve(self.file)

    def absolute_output(self) -> str:
        """Return the declared output path, resolved against the record directory when relative."""
        if not self.output:
            return ""
        return self._resolve(self.output)

    def emits_pch(self) -> bool:
        """Check whether the command produces a precompiled header."""
        return EMIT_PCH_FLAG in self.flags

    def pch_dependencies(self) -> List[str]:
        """Return every precompiled header this command includes.

        The header path follows -include-pch directly, or after a -Xclang
        separator when the flag is forwarded with -Xclang -include-pch -Xclang <path>.
        """
        pchs: List[str] = []
        for i, flag in enumerate(self.flags):
            if flag != INCLUDE_PCH_FLAG:
                continue
            j = i + 1
            if j < len(self.flags) and self.flags[j] == XCLANG_FLAG:
                j += 1
            if j < len(self.flags):
                pchs.append(self._resolve(self.flags[j]))
            else:
                logger.warning("Ignoring %s without a path in command for %s", INCLUDE_PCH_FLAG, self.file)
        return pchs


def parse_compile_commands(entries: Any) -> List[CompileCommand]:
    """Canonicalize every entry of a decoded compilation database.

    Raises:
        RecordError: If the database is not a list or any entry is malformed
    """
    if not isinstance(entries, list):
        raise RecordError("Compilation database must be a JSON array")
    return [CompileCommand.from_raw(entry) for entry in entries]


def load_compile_commands(path: str) -> List[CompileCommand]:
    """Load and canonicalize a compile_commands.json file.

    Args:
        path: Path to the compilation database

    Returns:
        List of CompileCommand in database order

    Raises:
        IoError: If the file cannot be read
        RecordError: If the JSON is invalid or any record is malformed
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            entries = json.load(f)
    except OSError as e:
        raise IoError(f"Cannot read compilation database {path}: {e}", path) from e
    except json.JSONDecodeError as e:
        raise RecordError(f"Reading compilation database file {path}: {e}") from e

    commands = parse_compile_commands(entries)
    logger.info("Loaded %d compile commands from %s", len(commands), path)
    return commands
