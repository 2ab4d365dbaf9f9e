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
"""Merge external definition maps into a single index for CTU analysis.

Every input is an extdef file produced by clang-extdef-mapping, or a response
file (prefixed with @) listing extdef files. Records are deduplicated by USR;
the first definition seen wins.

Usage:
    mergeExtdefs.py <input>... <output_file>
    mergeExtdefs.py @extdefs.rsp externalDefMap.txt

Exit Codes:
    0: Success
    1: Invalid arguments
    2: Unreadable input, malformed record or unwritable output
    130: Interrupted
"""

import sys
import logging
import argparse
from typing import List, Optional

from lib.color_utils import configure_colors, print_error, print_warning
from lib.constants import EXIT_SUCCESS, EXIT_RUNTIME_ERROR, EXIT_KEYBOARD_INTERRUPT, SaNinjaGenError
from lib.extdef_merge import merge_extdefs

__version__ = "1.0.0"

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Merges external definition maps, deduplicating by USR.")
    parser.add_argument("inputs", nargs="+", metavar="INPUT", help="Input files or a response file (prefixed with @)")
    parser.add_argument("output_file", metavar="OUTPUT_FILE", help="Output file")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the merge tool.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    args = parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")
    configure_colors(args.no_color)

    try:
        count = merge_extdefs(args.inputs, args.output_file)
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
        return EXIT_RUNTIME_ERROR

    logger.info("Wrote %d definitions to %s", count, args.output_file)
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
