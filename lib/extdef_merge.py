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
"""Merging of per-file external definition maps into one project-wide index.

Inputs are extdef files, or response files (prefixed with @) listing extdef
files separated by whitespace. Response files are expanded one level only.

Records are deduplicated by USR across all inputs. When two translation units
report different definition paths for the same USR, the first record in input
order wins and later ones are dropped.
"""

import logging
from typing import Dict, Iterable, List

from lib.constants import CodecError, IoError
from lib.extdef_codec import ENCODING, ERRORS, ExtDefMapping, parse_line, format_line

logger = logging.getLogger(__name__)

RESPONSE_FILE_PREFIX = "@"


def parse_response_file(path: str) -> List[str]:
    """Read the whitespace separated file paths listed in a response file.

    Raises:
        IoError: If the response file cannot be read
    """
    try:
        with open(path, "r", encoding=ENCODING, errors=ERRORS) as f:
            content = f.read()
    except OSError as e:
        raise IoError(f"Cannot read response file {path}: {e}", path) from e
    return content.split()


def expand_input_files(inputs: Iterable[str]) -> List[str]:
    """Flatten command line inputs, replacing each @file with its contents.

    Args:
        inputs: Extdef paths and @response-file tokens, in order

    Returns:
        Extdef paths in order of appearance
    """
    files: List[str] = []
    for token in inputs:
        if token.startswith(RESPONSE_FILE_PREFIX):
            listed = parse_response_file(token[len(RESPONSE_FILE_PREFIX) :])
            logger.debug("Response file %s lists %d files", token[1:], len(listed))
            files.extend(listed)
        else:
            files.append(token)
    return files


def read_extdef_file(path: str) -> List[ExtDefMapping]:
    """Parse every record of one extdef file. Blank lines are skipped.

    Only \n ends a record; a \r inside a USR is kept. A trailing \r before
    the \n is dropped.

    Raises:
        IoError: If the file cannot be read
        CodecError: If any line is malformed (the message names file and line)
    """
    mappings: List[ExtDefMapping] = []
    try:
        with open(path, "r", encoding=ENCODING, errors=ERRORS, newline="\n") as f:
            for line_number, line in enumerate(f, start=1):
                line = line[:-1] if line.endswith("\n") else line
                if line.endswith("\r"):
                    line = line[:-1]
                if not line:
                    continue
                try:
                    mappings.append(parse_line(line))
                except CodecError as e:
                    raise type(e)(f"{path}:{line_number}: {e}") from e
    except OSError as e:
        raise IoError(f"Cannot read extdef file {path}: {e}", path) from e
    return mappings


def merge_extdef_files(paths: Iterable[str]) -> Dict[str, ExtDefMapping]:
    """Merge extdef files, keeping the first record seen for each USR.

    Returns:
        Mapping of USR to surviving record, in first-seen order
    """
    merged: Dict[str, ExtDefMapping] = {}
    duplicates = 0
    file_count = 0
    for path in paths:
        file_count += 1
        for mapping in read_extdef_file(path):
            if mapping.usr in merged:
                duplicates += 1
                if merged[mapping.usr].path != mapping.path:
                    logger.debug("Conflicting definition of %s in %s ignored (kept %s)", mapping.usr, mapping.path, merged[mapping.usr].path)
                continue
            merged[mapping.usr] = mapping

    logger.info("Merged %d files: %d unique definitions, %d duplicates dropped", file_count, len(merged), duplicates)
    return merged


def write_extdef_map(mappings: Iterable[ExtDefMapping], output_file: str) -> int:
    """Write one record per line, replacing any existing file.

    Returns:
        Number of records written

    Raises:
        IoError: If the output cannot be written
    """
    count = 0
    try:
        with open(output_file, "w", encoding=ENCODING, errors=ERRORS, newline="\n") as f:
            for mapping in mappings:
                f.write(format_line(mapping))
                f.write("\n")
                count += 1
    except OSError as e:
        raise IoError(f"Cannot write extdef map {output_file}: {e}", output_file) from e
    return count


def merge_extdefs(inputs: Iterable[str], output_file: str) -> int:
    """Expand inputs, merge every extdef file and write the result.

    Args:
        inputs: Extdef paths and @response-file tokens
        output_file: Merged map to write

    Returns:
        Number of records written
    """
    files = expand_input_files(inputs)
    merged = merge_extdef_files(files)
    return write_extdef_map(merged.values(), output_file)
