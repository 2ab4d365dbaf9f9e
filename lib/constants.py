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
"""Shared constants for the sa-ninja-gen tools.

This module provides centralized constants used by both the ninja generator and
the extdef merge tool, together with the exception hierarchy that maps every
failure onto a process exit code.
"""

# =============================================================================
# Exit Codes
# =============================================================================

EXIT_SUCCESS = 0
EXIT_INVALID_ARGS = 1
EXIT_RUNTIME_ERROR = 2
EXIT_KEYBOARD_INTERRUPT = 130

# =============================================================================
# Compiler Flag Markers
# =============================================================================

OUTPUT_FLAG = "-o"  # Names the object file
COMPILE_ONLY_FLAG = "-c"  # Selects the translated source file
EMIT_PCH_FLAG = "-emit-pch"  # Marks a command that produces a precompiled header
INCLUDE_PCH_FLAG = "-include-pch"  # Names a precompiled header consumed by a command
XCLANG_FLAG = "-Xclang"  # Forwards the next token to the clang frontend
EMIT_AST_FLAG = "-emit-ast"

# =============================================================================
# Ninja Placeholders
# =============================================================================

NINJA_IN = "$in"
NINJA_OUT = "$out"
NINJA_LINE_WIDTH = 120  # Wrap width handed to the ninja_syntax writer

# =============================================================================
# Output Layout
# =============================================================================

AST_DIR = "ASTs"
EXTDEF_DIR = "extdefs"
REPORT_DIR = "reports"

AST_EXTENSION = "ast"
EXTDEF_EXTENSION = "extdef"
REPORT_EXTENSION = "plist"

EXTERNAL_DEF_MAP = "externalDefMap.txt"  # Default index name looked up by the analyzer in ctu-dir

# =============================================================================
# Rule Names
# =============================================================================

AST_RULE_PREFIX = "ast"
PCH_RULE_PREFIX = "pch"
ANALYSIS_RULE_PREFIX = "analysis"
CEM_RULE = "cem"
MERGE_RULE = "merge"
ANALYSIS_POOL = "analysis"

# =============================================================================
# External Tools
# =============================================================================

CLANG_EXTDEF_MAPPING = "clang-extdef-mapping"
CLANG_EXTDEF_MAPPING_ENV = "CLANG_EXTDEF_MAPPING"
MERGE_EXTDEFS = "merge-extdefs"
MERGE_EXTDEFS_ENV = "MERGE_EXTDEFS"

# =============================================================================
# Repository Discovery
# =============================================================================

VCS_MARKERS = [".git", ".hg", ".svn", ".bzr"]

# =============================================================================
# Graph Export Constants
# =============================================================================

SUPPORTED_GRAPH_FORMATS = [".graphml", ".dot", ".gexf", ".json"]
DEFAULT_GRAPH_FORMAT = "graphml"

# =============================================================================
# Exception Classes
# =============================================================================


class SaNinjaGenError(Exception):
    """Base exception for all sa-ninja-gen errors.

    All sa-ninja-gen exceptions carry an exit_code attribute that indicates
    what exit code the program should use when this error is caught at the
    main entry point.
    """

    def __init__(self, message: str, exit_code: int = EXIT_RUNTIME_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


# Configuration errors (EXIT_INVALID_ARGS)
class ConfigError(SaNinjaGenError):
    """Raised when paths or executables supplied to the generator are invalid."""

    def __init__(self, message: str):
        super().__init__(message, EXIT_INVALID_ARGS)


class ToolNotFoundError(ConfigError):
    """Raised when an external executable cannot be located."""


# Compilation database errors
class RecordError(SaNinjaGenError):
    """Raised when a compilation database entry is malformed."""


class MissingCommandError(RecordError):
    """Raised when a record has neither a command string nor an argument list."""


# Output layout errors
class PathError(SaNinjaGenError):
    """Raised when an output path cannot be derived for a source file."""


class PathNotUnderRepoError(PathError):
    """Raised when a source file does not live under the repository root."""

    def __init__(self, path: str, prefix: str):
        super().__init__(f"Failed to strip prefix {prefix} from {path}")
        self.path = path
        self.prefix = prefix


# Extdef record errors
class CodecError(SaNinjaGenError):
    """Raised when an external definition record cannot be parsed."""


class MalformedLengthError(CodecError):
    """Raised when the length field is missing or not a non-negative integer."""


class TruncatedKeyError(CodecError):
    """Raised when fewer bytes remain than the length field declares."""


class MissingSeparatorError(CodecError):
    """Raised when no whitespace separates the key from the path."""


# File access errors
class IoError(SaNinjaGenError):
    """Raised when an input or output file cannot be opened, read or written."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


# Graph errors
class GraphBuildError(SaNinjaGenError):
    """Raised when the assembled build graph is not a valid DAG."""
