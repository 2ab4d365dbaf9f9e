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
"""Generate a ninja build that runs the clang static analyzer over a project.

Reads a compilation database and writes a ninja file that dumps an AST for
every translation unit, extracts its external definitions, merges them into a
project-wide externalDefMap.txt and analyzes every file, optionally with cross
translation unit (CTU) lookups enabled.

Requirements:
    - Python 3.8+
    - clang, clang-extdef-mapping and merge-extdefs (at build time)
    - networkx, GitPython, colorama, xxhash, ninja: pip install -e .

Usage:
    saNinjaGen.py <compile_commands.json> <output.ninja> [--ctu] [--repo DIR] [--output-dir DIR]

Environment:
    CLANG_EXTDEF_MAPPING: Overrides the clang-extdef-mapping executable
    MERGE_EXTDEFS: Overrides the merge-extdefs executable

Exit Codes:
    0: Success
    1: Invalid arguments, paths or missing tools
    2: Generation failed
    130: Interrupted
"""

import os
import sys
import logging
import argparse
from typing import List, Optional

from lib.color_utils import configure_colors, print_error, print_success, print_warning
from lib.constants import EXIT_SUCCESS, EXIT_RUNTIME_ERROR, EXIT_KEYBOARD_INTERRUPT, ConfigError, SaNinjaGenError
from lib.ninja_gen import NinjaGen, NinjaGenOptions
from lib.package_verification import require_package
from lib.path_utils import absolutize, find_repo_root
from lib.tool_detection import detect_tool_locations

__version__ = "1.0.0"

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Generates a ninja build to run clang static analyzer.",
        epilog=f"Version {__version__}\n\nExamples:\n"
        "  %(prog)s build/compile_commands.json sa/ctu.ninja\n"
        "  %(prog)s build/compile_commands.json sa/ctu.ninja --ctu -j 8\n"
        "  %(prog)s build/compile_commands.json sa/ctu.ninja --repo . --output-dir /tmp/sa\n",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("compile_commands", help="Path to compile_commands.json file")
    parser.add_argument("output_file", metavar="OUTPUT_FILE", help="Path to ctu.ninja file")
    parser.add_argument("-c", "--ctu", action="store_true", help="Enable CTU")
    parser.add_argument(
        "--no-pch-detection",
        dest="detect_pch",
        action="store_false",
        help="Turns off generating build commands for PCH files (-emit-pch). "
        "The analysis might be broken if your build uses PCH files and you turn this off.",
    )
    parser.add_argument("-r", "--repo", metavar="PATH", help="Path to the repository (default: version control root of the current directory)")
    parser.add_argument("-o", "--output-dir", metavar="OUTPUT_DIR", help="Path to the output directory (default: directory of OUTPUT_FILE)")
    parser.add_argument("-j", "--analysis-jobs", type=int, metavar="N", help="Run at most N analyses concurrently (ninja pool depth)")
    parser.add_argument("--export-graph", metavar="FILE", help="Export the build graph (.graphml, .json, .gexf or .dot)")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser.parse_args(argv)


def resolve_options(args: argparse.Namespace) -> NinjaGenOptions:
    """Fill in defaults and validate paths.

    Raises:
        ConfigError: If a path is invalid or the repository root cannot be found
    """
    output_file = absolutize(args.output_file)
    output_dir = absolutize(args.output_dir) if args.output_dir else os.path.dirname(output_file)

    if args.repo:
        repo = absolutize(args.repo)
        if not os.path.isdir(repo):
            raise ConfigError(f"Repository path '{args.repo}' is not a directory")
    else:
        found = find_repo_root(os.getcwd())
        if found is None:
            raise ConfigError("Could not find the repository root (no .git, .hg, .svn or .bzr above the current directory); use --repo")
        repo = found

    compile_commands = absolutize(args.compile_commands)
    if not os.path.isfile(compile_commands):
        raise ConfigError(f"Compilation database '{args.compile_commands}' does not exist")

    if args.analysis_jobs is not None and args.analysis_jobs < 1:
        raise ConfigError("--analysis-jobs must be at least 1")

    return NinjaGenOptions(
        repo=repo,
        compile_commands=compile_commands,
        output_dir=output_dir,
        output_file=output_file,
        ctu=args.ctu,
        detect_pch=args.detect_pch,
        analysis_jobs=args.analysis_jobs,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the generator.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    args = parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")
    configure_colors(args.no_color)

    require_package("networkx", "build graph validation")

    try:
        options = resolve_options(args)
        tools = detect_tool_locations()
        logger.debug("Repository: %s, output directory: %s", options.repo, options.output_dir)

        generator = NinjaGen(options, tools)
        generator.generate()
        output = generator.write()

        if args.export_graph:
            from lib.export_utils import export_build_graph

            export_build_graph(args.export_graph, generator.graph, options.repo)

    except SaNinjaGenError as e:
        logging.error(str(e))
        print_error(str(e))
        return e.exit_code

    except KeyboardInterrupt:
        print_warning("\nInterrupted by user", prefix=False)
        return EXIT_KEYBOARD_INTERRUPT

    except Exception as e:  # pylint: disable=broad-exception-caught
        logging.critical("Unexpected error: %s", e, exc_info=args.verbose)
        print_error(f"Fatal error: {e}")
        print_warning("Run with --verbose for more details", prefix=False)
        return EXIT_RUNTIME_ERROR

    print_success(f"Wrote {output} ({len(generator.rules)} rules, {len(generator.builds)} build steps)")
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
