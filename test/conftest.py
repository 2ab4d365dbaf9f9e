#!/usr/bin/env python3
#****************************************************************************************************************************************************
#* BSD 3-Clause License
#*
#* Copyright (c) 2025, Mana Battery
#* All rights reserved.
#*
#* Redistribution and use in source and binary forms, with or without modification, are permitted provided that the following conditions are met:
#*
#* 1. Redistributions of source code must retain the above copyright notice, this list of conditions and the following disclaimer.
#* 2. Redistributions in binary form must reproduce the above copyright notice, this list of conditions and the following disclaimer in the
#*    documentation and/or other materials provided with the distribution.
#* 3. Neither the name of the copyright holder nor the names of its contributors may be used to endorse or promote products derived from this
#*    software without specific prior written permission.
#*
#* THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
#* THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
#* CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
#* PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
#* LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE,
#* EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
#****************************************************************************************************************************************************
"""Pytest configuration and shared base fixtures for sa-ninja-gen tests.

Fixtures build a throwaway repository layout on disk:

    <tmp>/repo/.git/                 version control marker
    <tmp>/repo/src/main.c
    <tmp>/repo/src/util/util.c
    <tmp>/repo/build/compile_commands.json
    <tmp>/out/                       generator output directory
"""

import os
import sys
import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator, List

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from lib.ninja_gen import NinjaGenOptions
from lib.tool_detection import ToolLocations, clear_cache


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests.

    Scope: function (default)
    Use for: File I/O operations that need isolation
    """
    tmpdir = tempfile.mkdtemp(prefix="sa_ninja_gen_test_")
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def mock_repo(temp_dir: Path) -> Path:
    """Create a repository with two C sources and a .git marker directory."""
    repo = temp_dir / "repo"
    (repo / ".git").mkdir(parents=True)
    (repo / "src" / "util").mkdir(parents=True)
    (repo / "build").mkdir()
    (repo / "src" / "main.c").write_text("int util(void);\nint main(void) { return util(); }\n")
    (repo / "src" / "util" / "util.c").write_text("int util(void) { return 0; }\n")
    return repo


@pytest.fixture
def compile_entries(mock_repo: Path) -> List[Dict[str, Any]]:
    """Two raw compilation database records, one per source file."""
    build_dir = mock_repo / "build"
    return [
        {
            "directory": str(build_dir),
            "command": f"clang -o main.o -DNDEBUG -c {mock_repo}/src/main.c",
            "file": str(mock_repo / "src" / "main.c"),
        },
        {
            "directory": str(build_dir),
            "arguments": ["clang", "-o", "util.o", "-DNDEBUG", "-c", str(mock_repo / "src" / "util" / "util.c")],
            "file": str(mock_repo / "src" / "util" / "util.c"),
        },
    ]


@pytest.fixture
def mock_compile_commands(mock_repo: Path, compile_entries: List[Dict[str, Any]]) -> str:
    """Write compile_entries to <repo>/build/compile_commands.json."""
    compile_db_path = mock_repo / "build" / "compile_commands.json"
    with open(compile_db_path, "w", encoding="utf-8") as f:
        json.dump(compile_entries, f, indent=2)
    return str(compile_db_path)


@pytest.fixture
def output_dir(temp_dir: Path) -> Path:
    out = temp_dir / "out"
    out.mkdir()
    return out


@pytest.fixture
def tool_locations() -> ToolLocations:
    """Fixed tool paths so tests never depend on PATH."""
    return ToolLocations(extdef_mapping="/opt/llvm/bin/clang-extdef-mapping", merge="/usr/local/bin/merge-extdefs")


@pytest.fixture
def ninja_options(mock_repo: Path, mock_compile_commands: str, output_dir: Path) -> NinjaGenOptions:
    """Generator options for the mock repository, CTU disabled."""
    return NinjaGenOptions(
        repo=str(mock_repo),
        compile_commands=mock_compile_commands,
        output_dir=str(output_dir),
        output_file=str(output_dir / "ctu.ninja"),
    )


@pytest.fixture(autouse=True)
def clean_tool_cache() -> Generator[None, None, None]:
    """Reset the tool detection cache around every test."""
    clear_cache()
    yield
    clear_cache()


def write_lines(path: Path, lines: List[str]) -> str:
    """Write lines to path with trailing newlines and return the path as str."""
    path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
    return str(path)


@pytest.fixture
def extdef_writer(temp_dir: Path) -> Any:
    """Factory writing an extdef file under temp_dir."""

    def _write(name: str, lines: List[str]) -> str:
        return write_lines(temp_dir / name, lines)

    return _write
