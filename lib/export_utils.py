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
"""Export utilities for writing the build graph to various file formats."""

import os
import json
import logging
from typing import Any

import networkx as nx
from networkx.readwrite import json_graph

from lib.color_utils import print_error, print_success
from lib.constants import DEFAULT_GRAPH_FORMAT, SUPPORTED_GRAPH_FORMATS

logger = logging.getLogger(__name__)


def export_build_graph(filename: str, directed_graph: Any, repo: str) -> str:
    """Export the artifact dependency graph with per-node presentation attributes.

    Supports: GraphML (.graphml), DOT (.dot), GEXF (.gexf), JSON (.json)

    Node attributes:
        - label: File basename
        - path: Path relative to the repository root when inside it
        - kind: Artifact kind (ast, extdef, report, pch, extdef_map, source)
        - rule: Producing rule, empty for sources
        - fan_in, fan_out: Number of direct inputs and dependents

    Args:
        filename: Output filename (extension determines format)
        directed_graph: NetworkX directed graph built by NinjaGen
        repo: Repository root used to shorten paths

    Returns:
        Name of the file actually written
    """
    ext = os.path.splitext(filename)[1].lower()
    if ext not in SUPPORTED_GRAPH_FORMATS:
        logger.warning("Unsupported graph format: %s. Defaulting to GraphML.", ext)
        filename = f"{filename}.{DEFAULT_GRAPH_FORMAT}"
        ext = f".{DEFAULT_GRAPH_FORMAT}"

    G = directed_graph.copy()
    for node in G.nodes():
        attrs = G.nodes[node]
        attrs["label"] = os.path.basename(node)
        attrs["path"] = os.path.relpath(node, repo) if node.startswith(repo + os.sep) else node
        attrs.setdefault("kind", "source")
        attrs.setdefault("rule", "")
        attrs["fan_in"] = G.in_degree(node)
        attrs["fan_out"] = G.out_degree(node)

    try:
        if ext == ".graphml":
            nx.write_graphml(G, filename)
        elif ext == ".dot":
            nx.drawing.nx_pydot.write_dot(G, filename)
        elif ext == ".gexf":
            nx.write_gexf(G, filename)
        elif ext == ".json":
            data = json_graph.node_link_data(G)
            with open(filename, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
    except ImportError:
        logger.error("Missing dependency for graph export")
        print_error("Missing dependency for graph export. Install pydot for DOT format.")
        raise

    logger.info("Exported build graph to %s", filename)
    print_success(f"Exported build graph to {filename}")
    return filename
