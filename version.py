#!/usr/bin/env python3

#
# Copyright © 2020-2024 VMware, Inc.
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-only
#

__all__ = ('get_builder_version',)

# Release used when git is not available on the system or there are no tags.
# This need not be updated with every tag release.
defaultTag = "1.0"

import os
from subprocess import CalledProcessError, DEVNULL, check_output, call


def _git(*args):
    return check_output(['git'] + list(args), stderr=DEVNULL, text=True).strip()


def get_version():
    try:
        return _git('rev-parse', '--short', 'HEAD')
    except (CalledProcessError, OSError):
        raise ValueError('Cannot get the version number!')


def get_latest_tag():
    try:
        tag = _git('describe', '--tags', '--abbrev=0')
    except (CalledProcessError, OSError):
        return defaultTag
    return tag[1:] if tag.startswith('v') else tag


def is_dirty():
    try:
        return len(_git('diff-index', '--name-only', 'HEAD')) > 0
    except (CalledProcessError, OSError):
        return False


def get_builder_version():
    here = os.path.abspath(os.path.dirname(__file__))
    # if not a git repo, return default tag.
    try:
        if call(['git', 'rev-parse', '--git-dir'], cwd=here, stderr=DEVNULL, stdout=DEVNULL):
            return defaultTag
    except FileNotFoundError:
        # also return default tag when we do not have git.
        return defaultTag

    try:
        version = f"{get_latest_tag()}+g{get_version()}"
    except ValueError:
        return defaultTag

    if is_dirty():
        version += '.dirty'

    return version


if __name__ == '__main__':
    print(get_builder_version())
