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
"""Ninja rule definitions and content-hash based rule deduplication.

Generated rules are named after a hash of the exact command words they run
(compiler, flags and purpose suffix), so every source file compiled with the
same compiler and flags shares one rule definition.
"""

import shlex
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, Iterable, Iterator, List, Optional

import xxhash
from ninja.ninja_syntax import escape

from lib.constants import (
    AST_RULE_PREFIX,
    PCH_RULE_PREFIX,
    ANALYSIS_RULE_PREFIX,
    CEM_RULE,
    MERGE_RULE,
    EMIT_AST_FLAG,
    COMPILE_ONLY_FLAG,
    OUTPUT_FLAG,
    NINJA_IN,
    NINJA_OUT,
)

if TYPE_CHECKING:
    from lib.compile_db import CompileCommand

logger = logging.getLogger(__name__)

ANALYZER_FLAGS = ["--analyze", "-Xanalyzer", "-analyzer-output=plist-multi-file"]


@dataclass(frozen=True)
class Rule:
    """A ninja rule: a command template plus presentation and scheduling settings."""

    name: str
    command: str
    description: Optional[str] = None
    rspfile: Optional[str] = None
    rspfile_content: Optional[str] = None
    pool: Optional[str] = None


def vector_hash(data: Iterable[str]) -> str:
    """Hash a sequence of strings into a short hex digest.

    The strings are fed to a 64-bit xxh3 hasher in order, so the digest depends
    on both content and order. Element boundaries are not encoded.

    Args:
        data: Strings to hash (e.g., a flag list)

    Returns:
        Lowercase hex digest without leading zeros
    """
    hasher = xxhash.xxh3_64()
    for item in data:
        hasher.update(item.encode("utf-8"))
    return f"{hasher.intdigest():x}"


class RuleTable:
    """Insertion-ordered mapping of rule name to Rule."""

    def __init__(self) -> None:
        self._rules: Dict[str, Rule] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules.values())

    def __getitem__(self, name: str) -> Rule:
        return self._rules[name]

    def add(self, rule: Rule) -> None:
        """Insert a fixed rule, replacing nothing that is already present."""
        if rule.name not in self._rules:
            self._rules[rule.name] = rule

    def get_or_create(self, name: str, factory: Callable[[], Rule]) -> str:
        """Return name, inserting factory() first if no rule by that name exists."""
        if name not in self._rules:
            self._rules[name] = factory()
            logger.debug("Created rule %s", name)
        return name


def command_tokens(cmd: "CompileCommand") -> List[str]:
    """Return the compiler and flags of cmd as ninja command words.

    Argument lists are exact argv entries and are shell quoted; tokens split
    from a command string are already shell words and are kept as they are.
    Every '$' is doubled so ninja passes it through unexpanded.
    """
    tokens = [cmd.compiler] + list(cmd.flags)
    if cmd.from_arguments:
        tokens = [shlex.quote(token) for token in tokens]
    return [escape(token) for token in tokens]


def _rule_name(prefix: str, words: List[str]) -> str:
    return f"{prefix}_{vector_hash(words)}"


def ast_rule(rules: RuleTable, cmd: "CompileCommand") -> str:
    """Return the name of the rule that dumps the AST for cmd.

    Args:
        rules: Rule table to look up or insert into
        cmd: Canonicalized compile command

    Returns:
        Rule name of the form ast_<hash>
    """
    words = command_tokens(cmd) + [EMIT_AST_FLAG, COMPILE_ONLY_FLAG, NINJA_IN, OUTPUT_FLAG, NINJA_OUT]
    name = _rule_name(AST_RULE_PREFIX, words)
    return rules.get_or_create(name, lambda: Rule(name, " ".join(words), description="AST $in"))


def pch_rule(rules: RuleTable, cmd: "CompileCommand") -> str:
    """Return the name of the rule that builds a precompiled header.

    The command's own flags already request PCH emission, so the rule is keyed
    on the compiler and flags directly.
    """
    command = command_tokens(cmd)
    name = _rule_name(PCH_RULE_PREFIX, command)
    words = command + [OUTPUT_FLAG, NINJA_OUT, COMPILE_ONLY_FLAG, NINJA_IN]
    return rules.get_or_create(name, lambda: Rule(name, " ".join(words), description="PCH $in"))


def ctu_flags(ctu_dir: str) -> List[str]:
    """Return the analyzer flags that enable CTU lookups in ctu_dir."""
    return [
        "-Xanalyzer",
        "-analyzer-config",
        "-Xanalyzer",
        "experimental-enable-naive-ctu-analysis=true",
        "-Xanalyzer",
        "-analyzer-config",
        "-Xanalyzer",
        escape(shlex.quote(f"ctu-dir={ctu_dir}")),
    ]


def analysis_rule(rules: RuleTable, cmd: "CompileCommand", ctu: bool, ctu_dir: str, pool: Optional[str] = None) -> str:
    """Return the name of the rule that runs the static analyzer.

    Args:
        rules: Rule table to look up or insert into
        cmd: Canonicalized compile command
        ctu: Whether cross translation unit analysis is enabled
        ctu_dir: Directory holding the merged external definition map
        pool: Optional ninja pool limiting concurrent analyses

    Returns:
        Rule name of the form analysis_<hash>
    """
    words = command_tokens(cmd) + ANALYZER_FLAGS
    if ctu:
        words += ctu_flags(ctu_dir)
    words += [OUTPUT_FLAG, NINJA_OUT, NINJA_IN]
    name = _rule_name(ANALYSIS_RULE_PREFIX, words)
    return rules.get_or_create(
        name,
        lambda: Rule(name, " ".join(words), description="ANALYZE $in", pool=pool),
    )


def cem_rule() -> Rule:
    """Return the fixed rule running clang-extdef-mapping on an AST."""
    return Rule(CEM_RULE, "$cem $in > $out", description="CEM $in")


def merge_rule() -> Rule:
    """Return the fixed rule merging every extdef file through a response file."""
    return Rule(
        MERGE_RULE,
        "$merge @$out.rsp $out",
        description="MERGE $out",
        rspfile="$out.rsp",
        rspfile_content="$in",
    )
