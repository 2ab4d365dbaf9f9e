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
"""Centralized external tool detection for sa-ninja-gen.

The generated ninja file embeds absolute paths to clang-extdef-mapping and the
merge-extdefs tool. Each tool is looked up on PATH, unless its environment
variable names an explicit executable or an alternative command name.

Tool detection results are cached within the Python process session.

CLI Interface:
    python3 -m lib.tool_detection --check-all      # Output JSON with all tools
    python3 -m lib.tool_detection --verbose        # Enable debug logging
"""

import os
import sys
import json
import shutil
import logging
import argparse
from dataclasses import dataclass
from typing import Dict, Optional

from lib.constants import (
    CLANG_EXTDEF_MAPPING,
    CLANG_EXTDEF_MAPPING_ENV,
    MERGE_EXTDEFS,
    MERGE_EXTDEFS_ENV,
    ToolNotFoundError,
)

logger = logging.getLogger(__name__)

# Session-level cache for tool detection results (keyed by command and variable)
_tool_cache: Dict[str, "ToolInfo"] = {}


@dataclass
class ToolInfo:
    """Information about a located external tool.

    Attributes:
        command: Default command name (e.g., "clang-extdef-mapping")
        path: Absolute path of the executable
        source: "env" when taken from the override variable, "PATH" otherwise
    """

    command: str
    path: str
    source: str


@dataclass(frozen=True)
class ToolLocations:
    """Executables embedded into the generated build graph."""

    extdef_mapping: str
    merge: str


def clear_cache() -> None:
    """Clear the tool detection cache.

    Useful for testing or when environment changes during process lifetime.
    """
    _tool_cache.clear()
    logger.debug("Tool detection cache cleared")


def find_command(command: str, varname: str) -> ToolInfo:
    """Locate an executable, honoring an environment override.

    If varname is set, its value is used as-is when it names an existing path,
    and is otherwise looked up on PATH. If varname is unset, command is looked
    up on PATH.

    Args:
        command: Default command name
        varname: Environment variable that overrides the lookup

    Returns:
        ToolInfo for the executable

    Raises:
        ToolNotFoundError: If the executable cannot be found
    """
    override = os.environ.get(varname)
    cache_key = f"{command}:{varname}:{override}"
    if cache_key in _tool_cache:
        return _tool_cache[cache_key]

    if override:
        if os.path.exists(override):
            tool_info = ToolInfo(command=command, path=os.path.abspath(override), source="env")
        else:
            found = shutil.which(override)
            if found is None:
                raise ToolNotFoundError(f"Could not find '{command}' in PATH ({varname} was set to {override})")
            tool_info = ToolInfo(command=command, path=found, source="env")
    else:
        found = shutil.which(command)
        if found is None:
            raise ToolNotFoundError(f"Could not find '{command}' in PATH (and {varname} was not set)")
        tool_info = ToolInfo(command=command, path=found, source="PATH")

    logger.debug("Found %s at %s (from %s)", command, tool_info.path, tool_info.source)
    _tool_cache[cache_key] = tool_info
    return tool_info


def find_extdef_mapping() -> ToolInfo:
    """Find clang-extdef-mapping (override: CLANG_EXTDEF_MAPPING)."""
    return find_command(CLANG_EXTDEF_MAPPING, CLANG_EXTDEF_MAPPING_ENV)


def find_merge_extdefs() -> ToolInfo:
    """Find merge-extdefs (override: MERGE_EXTDEFS)."""
    return find_command(MERGE_EXTDEFS, MERGE_EXTDEFS_ENV)


def detect_tool_locations() -> ToolLocations:
    """Resolve every tool the generated graph invokes.

    Raises:
        ToolNotFoundError: If any tool is missing
    """
    return ToolLocations(extdef_mapping=find_extdef_mapping().path, merge=find_merge_extdefs().path)


def check_all_tools() -> Dict[str, Dict[str, str]]:
    """Check all known tools and return their status.

    Returns:
        Dictionary with tool names as keys, each containing path and source.
        Missing tools are omitted from the result.
    """
    tools: Dict[str, Dict[str, str]] = {}

    for tool_name, find_func in [(CLANG_EXTDEF_MAPPING, find_extdef_mapping), (MERGE_EXTDEFS, find_merge_extdefs)]:
        try:
            tool_info = find_func()
        except ToolNotFoundError as e:
            logger.debug("%s", e)
            continue
        tools[tool_name] = {"path": tool_info.path, "source": tool_info.source}

    return tools


def main(argv: Optional[list] = None) -> int:
    """Main entry point for CLI usage.

    Returns:
        Exit code: 0 if every tool was found, 1 otherwise
    """
    parser = argparse.ArgumentParser(description="Detect external tools for sa-ninja-gen", formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--check-all", action="store_true", help="Check all tools and output JSON")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose debug logging")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(message)s", stream=sys.stderr)
    else:
        logging.basicConfig(level=logging.WARNING)

    if args.check_all:
        tools = check_all_tools()
        print(json.dumps({"tools": tools}, indent=2))
        return 0 if len(tools) == 2 else 1

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
