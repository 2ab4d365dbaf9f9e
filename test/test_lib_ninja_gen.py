#!/usr/bin/env python3
"""Tests for lib/ninja_gen.py"""

import io
import re
import logging
from pathlib import Path
from typing import List

import networkx as nx
import pytest

from lib.compile_db import CompileCommand
from lib.constants import GraphBuildError, IoError, PathNotUnderRepoError, RecordError
from lib.ninja_gen import Build, NinjaGen, NinjaGenOptions
from lib.tool_detection import ToolLocations


def _commands(repo: Path, *commands: str) -> List[CompileCommand]:
    """Build records from '<command>' strings whose last token is the source."""
    return [CompileCommand.from_raw({"directory": str(repo), "command": command, "file": command.split(" ")[-1]}) for command in commands]


def _unwrap(text: str) -> str:
    """Join ninja continuation lines so long build statements can be matched."""
    return re.sub(r" \$\n +", " ", text)


def _builds_by_rule_prefix(builds: List[Build], prefix: str) -> List[Build]:
    return [b for b in builds if b.rule.startswith(prefix)]


class TestGenerate:
    """Tests for build graph assembly."""

    @pytest.mark.unit
    def test_two_file_project(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations, mock_repo: Path, output_dir: Path) -> None:
        """Test the AST, extdef, analysis and merge steps for two sources."""
        builds = NinjaGen(ninja_options, tool_locations).generate()

        ast_builds = _builds_by_rule_prefix(builds, "ast_")
        extdef_builds = [b for b in builds if b.rule == "cem"]
        analysis_builds = _builds_by_rule_prefix(builds, "analysis_")
        merge_builds = [b for b in builds if b.rule == "merge"]

        assert len(ast_builds) == 2
        assert len(extdef_builds) == 2
        assert len(analysis_builds) == 2
        assert len(merge_builds) == 1
        assert len(builds) == 7

        assert ast_builds[0].outputs == (str(output_dir / "ASTs" / "src" / "main.ast"),)
        assert ast_builds[0].inputs == (str(mock_repo / "src" / "main.c"),)
        assert ast_builds[1].outputs == (str(output_dir / "ASTs" / "src" / "util" / "util.ast"),)

        assert extdef_builds[0].inputs == ast_builds[0].outputs
        assert extdef_builds[0].outputs == (str(output_dir / "extdefs" / "src" / "main.extdef"),)

        extdef_map = str(output_dir / "externalDefMap.txt")
        assert merge_builds[0].outputs == (extdef_map,)
        assert merge_builds[0].inputs == extdef_builds[0].outputs + extdef_builds[1].outputs

        for build in analysis_builds:
            assert build.implicit == (extdef_map,)
        assert analysis_builds[1].outputs == (str(output_dir / "reports" / "src" / "util" / "util.plist"),)
        assert analysis_builds[1].inputs == (str(mock_repo / "src" / "util" / "util.c"),)

    @pytest.mark.unit
    def test_merge_is_last(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations) -> None:
        builds = NinjaGen(ninja_options, tool_locations).generate()

        assert builds[-1].rule == "merge"

    @pytest.mark.unit
    def test_shared_flags_share_rules(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations) -> None:
        """Test both sources use one AST rule and one analysis rule."""
        generator = NinjaGen(ninja_options, tool_locations)
        generator.generate()

        assert [rule.name for rule in generator.rules][:2] == ["cem", "merge"]
        assert len(generator.rules) == 4

    @pytest.mark.unit
    def test_generate_is_idempotent(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations) -> None:
        generator = NinjaGen(ninja_options, tool_locations)

        first = list(generator.generate())
        second = generator.generate()

        assert first == second

    @pytest.mark.unit
    def test_graph_is_acyclic(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations, output_dir: Path) -> None:
        generator = NinjaGen(ninja_options, tool_locations)
        generator.generate()
        graph = generator.graph

        assert nx.is_directed_acyclic_graph(graph)
        extdef_map = str(output_dir / "externalDefMap.txt")
        assert graph.nodes[extdef_map]["kind"] == "extdef_map"
        assert graph.in_degree(extdef_map) == 2
        assert graph.out_degree(extdef_map) == 2
        report = str(output_dir / "reports" / "src" / "main.plist")
        assert graph.edges[extdef_map, report]["dependency"] == "implicit"

    @pytest.mark.unit
    def test_empty_database(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations) -> None:
        """Test an empty database still produces the merge step."""
        builds = NinjaGen(ninja_options, tool_locations, commands=[]).generate()

        assert len(builds) == 1
        assert builds[0].inputs == ()

    @pytest.mark.unit
    def test_source_outside_repository(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations) -> None:
        commands = _commands(Path("/elsewhere"), "clang -c /elsewhere/x.c")

        with pytest.raises(PathNotUnderRepoError):
            NinjaGen(ninja_options, tool_locations, commands=commands).generate()

    @pytest.mark.unit
    def test_colliding_outputs(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations, mock_repo: Path) -> None:
        """Test a.c and a.cpp in one directory both map to a.ast."""
        commands = _commands(mock_repo, f"clang -c {mock_repo}/src/a.c", f"clang++ -c {mock_repo}/src/a.cpp")

        with pytest.raises(GraphBuildError, match="a.ast"):
            NinjaGen(ninja_options, tool_locations, commands=commands).generate()

    @pytest.mark.unit
    def test_duplicate_file_last_wins(
        self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations, mock_repo: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        commands = _commands(mock_repo, f"clang -O0 -c {mock_repo}/src/a.c", f"clang -O2 -c {mock_repo}/src/a.c")

        with caplog.at_level(logging.WARNING):
            generator = NinjaGen(ninja_options, tool_locations, commands=commands)

        assert "Duplicate compile command" in caplog.text
        builds = generator.generate()
        assert len(_builds_by_rule_prefix(builds, "ast_")) == 1
        assert "-O2" in generator.rules[_builds_by_rule_prefix(builds, "ast_")[0].rule].command


class TestPchBuilds:
    """Tests for precompiled header handling."""

    @pytest.fixture
    def pch_commands(self, mock_repo: Path) -> List[CompileCommand]:
        return _commands(
            mock_repo,
            f"clang -x c-header -Xclang -emit-pch -o {mock_repo}/build/pch.h.pch -c {mock_repo}/src/pch.h",
            f"clang -Xclang -include-pch -Xclang {mock_repo}/build/pch.h.pch -c {mock_repo}/src/main.c",
        )

    @pytest.mark.unit
    def test_pch_build_emitted_first(
        self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations, mock_repo: Path, pch_commands: List[CompileCommand]
    ) -> None:
        builds = NinjaGen(ninja_options, tool_locations, commands=pch_commands).generate()

        pch = str(mock_repo / "build" / "pch.h.pch")
        assert builds[0].rule.startswith("pch_")
        assert builds[0].outputs == (pch,)
        assert builds[0].inputs == (str(mock_repo / "src" / "pch.h"),)

    @pytest.mark.unit
    def test_consumer_ast_depends_on_pch(
        self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations, mock_repo: Path, pch_commands: List[CompileCommand]
    ) -> None:
        generator = NinjaGen(ninja_options, tool_locations, commands=pch_commands)
        builds = generator.generate()

        pch = str(mock_repo / "build" / "pch.h.pch")
        main_ast = [b for b in _builds_by_rule_prefix(builds, "ast_") if b.inputs == (str(mock_repo / "src" / "main.c"),)]
        assert main_ast[0].implicit == (pch,)
        assert generator.graph.has_edge(pch, main_ast[0].outputs[0])

    @pytest.mark.unit
    def test_pch_producer_also_analyzed(
        self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations, pch_commands: List[CompileCommand]
    ) -> None:
        builds = NinjaGen(ninja_options, tool_locations, commands=pch_commands).generate()

        assert len(_builds_by_rule_prefix(builds, "ast_")) == 2
        assert len(_builds_by_rule_prefix(builds, "analysis_")) == 2

    @pytest.mark.unit
    def test_detection_disabled(
        self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations, pch_commands: List[CompileCommand]
    ) -> None:
        ninja_options.detect_pch = False

        builds = NinjaGen(ninja_options, tool_locations, commands=pch_commands).generate()

        assert not _builds_by_rule_prefix(builds, "pch_")

    @pytest.mark.unit
    def test_pch_without_output(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations, mock_repo: Path) -> None:
        commands = _commands(mock_repo, f"clang -Xclang -emit-pch -c {mock_repo}/src/pch.h")

        with pytest.raises(RecordError, match="no output"):
            NinjaGen(ninja_options, tool_locations, commands=commands).generate()


class TestCtuAndPool:
    """Tests for CTU flags and the analysis pool."""

    @pytest.mark.unit
    def test_ctu_rule(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations, output_dir: Path) -> None:
        ninja_options.ctu = True
        generator = NinjaGen(ninja_options, tool_locations)
        builds = generator.generate()

        rule = generator.rules[_builds_by_rule_prefix(builds, "analysis_")[0].rule]
        assert "experimental-enable-naive-ctu-analysis=true" in rule.command
        assert f"ctu-dir={output_dir}" in rule.command

    @pytest.mark.unit
    def test_no_pool_by_default(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations) -> None:
        generator = NinjaGen(ninja_options, tool_locations)
        generator.generate()

        assert generator.pools == {}
        assert all(rule.pool is None for rule in generator.rules)

    @pytest.mark.unit
    def test_analysis_pool(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations) -> None:
        ninja_options.analysis_jobs = 4
        generator = NinjaGen(ninja_options, tool_locations)
        builds = generator.generate()

        assert generator.pools == {"analysis": 4}
        assert generator.rules[_builds_by_rule_prefix(builds, "analysis_")[0].rule].pool == "analysis"
        assert generator.rules[_builds_by_rule_prefix(builds, "ast_")[0].rule].pool is None


class TestWrite:
    """Tests for ninja serialization."""

    @pytest.mark.unit
    def test_ninja_text(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations, mock_repo: Path, output_dir: Path) -> None:
        stream = io.StringIO()
        NinjaGen(ninja_options, tool_locations).write_ninja(stream)
        text = _unwrap(stream.getvalue())

        assert text.startswith(f"root = {mock_repo}\ncem = /opt/llvm/bin/clang-extdef-mapping\nmerge = /usr/local/bin/merge-extdefs\n")
        assert "rule cem\n  command = $cem $in > $out\n" in text
        assert "rule merge\n  command = $merge @$out.rsp $out\n" in text
        assert "  rspfile = $out.rsp\n  rspfile_content = $in\n" in text
        assert f"build {output_dir}/ASTs/src/main.ast: ast_" in text
        assert f"build {output_dir}/extdefs/src/main.extdef: cem {output_dir}/ASTs/src/main.ast\n" in text
        assert f"{mock_repo}/src/main.c | {output_dir}/externalDefMap.txt\n" in text
        assert "pool " not in text

    @pytest.mark.unit
    def test_argument_list_quoted_in_rules(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations, mock_repo: Path) -> None:
        source = str(mock_repo / "src" / "main.c")
        record = {"directory": str(mock_repo), "arguments": ["clang", "-DMSG=hello world", "-c", source], "file": source}
        stream = io.StringIO()

        NinjaGen(ninja_options, tool_locations, commands=[CompileCommand.from_raw(record)]).write_ninja(stream)
        text = _unwrap(stream.getvalue())

        assert "  command = clang '-DMSG=hello world' -emit-ast -c $in -o $out\n" in text
        assert "clang '-DMSG=hello world' --analyze" in text

    @pytest.mark.unit
    def test_pool_written(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations) -> None:
        ninja_options.analysis_jobs = 2
        stream = io.StringIO()
        NinjaGen(ninja_options, tool_locations).write_ninja(stream)

        assert "pool analysis\n  depth = 2\n" in stream.getvalue()
        assert "  pool = analysis\n" in stream.getvalue()

    @pytest.mark.unit
    def test_deterministic_output(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations) -> None:
        first = io.StringIO()
        second = io.StringIO()
        NinjaGen(ninja_options, tool_locations).write_ninja(first)
        NinjaGen(ninja_options, tool_locations).write_ninja(second)

        assert first.getvalue() == second.getvalue()

    @pytest.mark.unit
    def test_write_to_output_file(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations, output_dir: Path) -> None:
        path = NinjaGen(ninja_options, tool_locations).write()

        assert path == str(output_dir / "ctu.ninja")
        assert "rule merge" in (output_dir / "ctu.ninja").read_text()

    @pytest.mark.unit
    def test_write_failure(self, ninja_options: NinjaGenOptions, tool_locations: ToolLocations, output_dir: Path) -> None:
        with pytest.raises(IoError):
            NinjaGen(ninja_options, tool_locations).write(str(output_dir / "missing" / "ctu.ninja"))
