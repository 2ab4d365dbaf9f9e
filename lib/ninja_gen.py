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
"""Build graph assembly and ninja file generation for clang static analysis.

For every compile command the generator emits a chain of build steps:

    [PCH] -> AST dump -> extdef extraction -> merged extdef map -> analysis

The per-file artifacts mirror the source tree under <output_dir>/ASTs,
<output_dir>/extdefs and <output_dir>/reports. A single merge step collects
every extdef file into <output_dir>/externalDefMap.txt, which every analysis
step depends on.

Builds are recorded both as an ordered list (what gets written) and as a
networkx DiGraph of artifacts (what gets validated and exported).
"""

import os
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import networkx as nx
from ninja.ninja_syntax import Writer

from lib.constants import (
    AST_DIR,
    EXTDEF_DIR,
    REPORT_DIR,
    AST_EXTENSION,
    EXTDEF_EXTENSION,
    REPORT_EXTENSION,
    EXTERNAL_DEF_MAP,
    CEM_RULE,
    MERGE_RULE,
    ANALYSIS_POOL,
    NINJA_LINE_WIDTH,
    RecordError,
    IoError,
    GraphBuildError,
)
from lib.compile_db import CompileCommand, load_compile_commands
from lib.path_utils import get_output_filename
from lib.rule_utils import RuleTable, ast_rule, pch_rule, analysis_rule, cem_rule, merge_rule
from lib.tool_detection import ToolLocations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Build:
    """One ninja build statement."""

    outputs: Tuple[str, ...]
    rule: str
    inputs: Tuple[str, ...] = ()
    implicit: Tuple[str, ...] = ()


@dataclass
class NinjaGenOptions:
    """Resolved generator configuration.

    Attributes:
        repo: Repository root every source file must live under
        compile_commands: Path to compile_commands.json
        output_dir: Root of the ASTs/extdefs/reports trees
        output_file: Path of the ninja file to write
        ctu: Enable cross translation unit analysis
        detect_pch: Emit build steps for -emit-pch commands
        analysis_jobs: Depth of the analysis pool, or None for no pool
    """

    repo: str
    compile_commands: str
    output_dir: str
    output_file: str
    ctu: bool = False
    detect_pch: bool = True
    analysis_jobs: Optional[int] = None

    @property
    def extdef_map(self) -> str:
        """Path of the merged external definition map."""
        return os.path.join(self.output_dir, EXTERNAL_DEF_MAP)


class NinjaGen:
    """Assembles the static analysis build graph for a compilation database.

    Tool locations are injected so the generator never searches PATH itself.
    When commands is None the compilation database named in the options is
    loaded.
    """

    def __init__(self, options: NinjaGenOptions, tools: ToolLocations, commands: Optional[Sequence[CompileCommand]] = None):
        self.options = options
        self.tools = tools

        if commands is None:
            commands = load_compile_commands(options.compile_commands)

        self.variables: List[Tuple[str, str]] = [
            ("root", options.repo),
            ("cem", tools.extdef_mapping),
            ("merge", tools.merge),
        ]
        self.pools: Dict[str, int] = {}
        if options.analysis_jobs:
            self.pools[ANALYSIS_POOL] = options.analysis_jobs

        self.rules = RuleTable()
        self.rules.add(cem_rule())
        self.rules.add(merge_rule())

        self.builds: List[Build] = []
        self.graph: "nx.DiGraph[str]" = nx.DiGraph()
        self._producers: Dict[str, Build] = {}
        self._generated = False

        self.commands: Dict[str, CompileCommand] = {}
        self.pch_commands: Dict[str, CompileCommand] = {}
        for cmd in commands:
            if cmd.file in self.commands:
                logger.warning("Duplicate compile command for %s, keeping the last one", cmd.file)
            if options.detect_pch and cmd.emits_pch():
                self.pch_commands[cmd.file] = cmd
            self.commands[cmd.file] = cmd

    def _add_build(self, build: Build, kind: str) -> None:
        """Record build and add its dependency edges to the artifact graph.

        Raises:
            GraphBuildError: If another build already produces one of the outputs
        """
        for output in build.outputs:
            if output in self._producers:
                raise GraphBuildError(f"Multiple build steps produce {output}")
            self._producers[output] = build
            self.graph.add_node(output, kind=kind, rule=build.rule)
            for source in build.inputs:
                self.graph.add_edge(source, output, dependency="explicit")
            for source in build.implicit:
                self.graph.add_edge(source, output, dependency="implicit")
        self.builds.append(build)

    def _output_filename(self, category: str, cmd: CompileCommand, extension: str) -> str:
        return get_output_filename(os.path.join(self.options.output_dir, category), cmd.absolute_file(), self.options.repo, extension)

    def _generate_pch_builds(self) -> None:
        for cmd in self.pch_commands.values():
            rule = pch_rule(self.rules, cmd)
            output_filename = cmd.absolute_output()
            if not output_filename:
                raise RecordError(f"PCH command for {cmd.file} has no output file")
            logger.info("PCH: %s", output_filename)
            self._add_build(Build((output_filename,), rule, inputs=(cmd.absolute_file(),)), kind="pch")

    def _generate_file_builds(self) -> List[str]:
        extdefs: List[str] = []
        extdef_map = self.options.extdef_map
        pool = ANALYSIS_POOL if ANALYSIS_POOL in self.pools else None

        for cmd in self.commands.values():
            source = cmd.absolute_file()

            ast_file = self._output_filename(AST_DIR, cmd, AST_EXTENSION)
            build = Build((ast_file,), ast_rule(self.rules, cmd), inputs=(source,), implicit=tuple(cmd.pch_dependencies()))
            self._add_build(build, kind="ast")

            extdef = self._output_filename(EXTDEF_DIR, cmd, EXTDEF_EXTENSION)
            self._add_build(Build((extdef,), CEM_RULE, inputs=(ast_file,)), kind="extdef")
            extdefs.append(extdef)

            # The analyzer reads the merged map whenever it exists, so every
            # analysis waits for it even without CTU.
            report = self._output_filename(REPORT_DIR, cmd, REPORT_EXTENSION)
            rule = analysis_rule(self.rules, cmd, self.options.ctu, self.options.output_dir, pool)
            self._add_build(Build((report,), rule, inputs=(source,), implicit=(extdef_map,)), kind="report")

        return extdefs

    def generate(self) -> List[Build]:
        """Assemble every build step.

        Returns:
            Ordered list of build steps

        Raises:
            PathNotUnderRepoError: If a source file is outside the repository
            GraphBuildError: If outputs collide or the graph has a cycle
        """
        if self._generated:
            return self.builds

        self._generate_pch_builds()
        extdefs = self._generate_file_builds()
        self._add_build(Build((self.options.extdef_map,), MERGE_RULE, inputs=tuple(extdefs)), kind="extdef_map")

        if not nx.is_directed_acyclic_graph(self.graph):
            cycle = nx.find_cycle(self.graph)
            raise GraphBuildError(f"Build graph contains a cycle: {' -> '.join(u for u, _ in cycle)}")

        self._generated = True
        logger.info("Generated %d rules and %d build steps for %d files", len(self.rules), len(self.builds), len(self.commands))
        return self.builds

    def write_ninja(self, output: Any) -> None:
        """Serialize variables, pools, rules and builds to a text stream."""
        self.generate()

        ninja = Writer(output, width=NINJA_LINE_WIDTH)
        for key, value in self.variables:
            ninja.variable(key, value)
        ninja.newline()

        for name, depth in self.pools.items():
            ninja.pool(name, depth)
            ninja.newline()

        for rule in self.rules:
            ninja.rule(
                rule.name,
                rule.command,
                description=rule.description,
                pool=rule.pool,
                rspfile=rule.rspfile,
                rspfile_content=rule.rspfile_content,
            )
            ninja.newline()

        for build in self.builds:
            ninja.build(list(build.outputs), build.rule, inputs=list(build.inputs), implicit=list(build.implicit) or None)

    def write(self, path: Optional[str] = None) -> str:
        """Write the ninja file (default: the configured output file).

        Returns:
            Path that was written

        Raises:
            IoError: If the file cannot be written
        """
        if path is None:
            path = self.options.output_file

        self.generate()
        try:
            with open(path, "w", encoding="utf-8") as f:
                self.write_ninja(f)
        except OSError as e:
            raise IoError(f"Cannot write ninja file {path}: {e}", path) from e

        logger.info("Wrote %s", path)
        return path
