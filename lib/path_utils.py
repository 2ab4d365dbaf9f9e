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
"""Path utilities: output tree mapping and repository root discovery."""

import os
import logging
from pathlib import PurePath
from typing import Optional

from git import Repo, InvalidGitRepositoryError, NoSuchPathError
from git.exc import GitError

from lib.constants import VCS_MARKERS, PathNotUnderRepoError

logger = logging.getLogger(__name__)


def absolutize(path: str) -> str:
    """Return path as an absolute, lexically normalized path.

    Symlinks are not resolved.
    """
    return os.path.normpath(os.path.abspath(path))


def get_output_filename(output_dir: str, input_file: str, prefix: str, extension: str) -> str:
    """Mirror a source file under an output directory with a new extension.

    The path of input_file relative to prefix is re-rooted under output_dir,
    so the output tree replicates the source tree.

    Args:
        output_dir: Category root (e.g., <out>/ASTs)
        input_file: Source file path
        prefix: Repository root input_file must live under
        extension: New extension without the dot (e.g., "ast")

    Returns:
        Absolute, normalized output path

    Raises:
        PathNotUnderRepoError: If input_file is not under prefix

    Example:
        >>> get_output_filename("/tmp", "/tmp/foo/bar/baz.cpp", "/tmp/foo", "ast")
        '/tmp/bar/baz.ast'
    """
    try:
        relative = PurePath(input_file).relative_to(PurePath(prefix))
    except ValueError as e:
        raise PathNotUnderRepoError(str(input_file), str(prefix)) from e

    if not relative.name:
        raise PathNotUnderRepoError(str(input_file), str(prefix))

    filename = PurePath(output_dir) / relative.with_suffix(f".{extension}")
    return absolutize(str(filename))


def find_git_repo(start_path: str) -> Optional[str]:
    """Find the git repository root by searching upward from start_path.

    Args:
        start_path: Directory to start searching from

    Returns:
        Absolute path to git repository root, or None if not found
    """
    try:
        repo = Repo(start_path, search_parent_directories=True)
        repo_root = repo.working_dir
        if repo_root is not None:
            logger.debug("Found git repository at: %s", repo_root)
            return str(repo_root)
    except (InvalidGitRepositoryError, NoSuchPathError, GitError):
        pass
    return None


def find_vcs_root(start_path: str) -> Optional[str]:
    """Find the closest ancestor of start_path holding a version control marker.

    Checks .git, .hg, .svn and .bzr, starting at start_path itself. The
    filesystem root is never reported.
    """
    current = absolutize(start_path)
    while True:
        parent = os.path.dirname(current)
        if parent == current:
            return None
        for marker in VCS_MARKERS:
            if os.path.exists(os.path.join(current, marker)):
                logger.debug("Found %s marker at: %s", marker, current)
                return current
        current = parent


def find_repo_root(start_path: Optional[str] = None) -> Optional[str]:
    """Find the repository root containing start_path (default: current directory).

    Git repositories are resolved with GitPython; other version control
    systems are found through their marker directories. When both answer,
    the nearer root wins so a nested checkout is not swallowed by an
    enclosing git repository.
    """
    if start_path is None:
        start_path = os.getcwd()

    marker_root = find_vcs_root(start_path)
    git_root = find_git_repo(start_path)
    if git_root is None:
        return marker_root
    git_root = absolutize(git_root)
    # Both are ancestors of start_path, so the longer path is the nearer one
    if marker_root is not None and len(marker_root) > len(git_root):
        return marker_root
    return git_root
