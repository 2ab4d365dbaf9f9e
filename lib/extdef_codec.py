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
"""Reader and writer for external definition map records.

clang-extdef-mapping emits one record per line:

    <length>:<usr> <path>

where <length> is the byte length of the USR. The USR may itself contain
colons and spaces, so it is read by length instead of by delimiter.
"""

from typing import Any

from lib.constants import MalformedLengthError, TruncatedKeyError, MissingSeparatorError

ENCODING = "utf-8"
ERRORS = "surrogateescape"  # Round-trips bytes that are not valid UTF-8
SEPARATORS = b" \t"


class ExtDefMapping:
    """One USR -> defining file record.

    Two mappings are equal (and hash equally) when their USRs match; the path
    is not part of the identity.
    """

    __slots__ = ("length", "usr", "path")

    def __init__(self, usr: str, path: str, length: int = -1):
        self.usr = usr
        self.path = path
        self.length = length if length >= 0 else len(usr.encode(ENCODING, ERRORS))

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, ExtDefMapping):
            return NotImplemented
        return self.usr == other.usr

    def __hash__(self) -> int:
        return hash(self.usr)

    def __repr__(self) -> str:
        return f"ExtDefMapping(usr={self.usr!r}, path={self.path!r}, length={self.length})"

    def __str__(self) -> str:
        return format_line(self)


def parse_line(line: str) -> ExtDefMapping:
    """Parse one "<length>:<usr> <path>" record.

    Args:
        line: Record without its line terminator

    Returns:
        Parsed mapping

    Raises:
        MalformedLengthError: If the length is missing or not a non-negative integer
        TruncatedKeyError: If fewer bytes follow the colon than the length declares
        MissingSeparatorError: If no space or tab follows the USR
    """
    raw = line.encode(ENCODING, ERRORS)

    colon = raw.find(b":")
    if colon < 0:
        raise MalformedLengthError(f"Missing ':' after length in record: {line!r}")
    length_field = raw[:colon]
    if not length_field or not length_field.isdigit():
        raise MalformedLengthError(f"Invalid length {length_field.decode(ENCODING, ERRORS)!r} in record: {line!r}")
    length = int(length_field)

    key_start = colon + 1
    key_end = key_start + length
    if key_end > len(raw):
        raise TruncatedKeyError(f"Record declares {length} key bytes but only {len(raw) - key_start} remain: {line!r}")
    usr = raw[key_start:key_end].decode(ENCODING, ERRORS)

    rest = raw[key_end:]
    path = rest.lstrip(SEPARATORS)
    if len(path) == len(rest):
        raise MissingSeparatorError(f"Missing whitespace after USR in record: {line!r}")

    return ExtDefMapping(usr=usr, path=path.decode(ENCODING, ERRORS), length=length)


def format_line(mapping: ExtDefMapping) -> str:
    """Serialize a mapping, recomputing the length from the USR."""
    length = len(mapping.usr.encode(ENCODING, ERRORS))
    return f"{length}:{mapping.usr} {mapping.path}"
