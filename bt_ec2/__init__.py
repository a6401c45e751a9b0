#
# Copyright © 2020-2024 VMware, Inc.
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-only
#

import glob
import os
from importlib.metadata import PackageNotFoundError, version

modules = glob.glob(os.path.join(os.path.dirname(__file__), "*.py"))
__all__ = [os.path.basename(f)[:-3] for f in modules if os.path.isfile(f) and not f.endswith('__init__.py')]

try:
    __version__ = version("bt-ec2")
except PackageNotFoundError:
    __version__ = "0.0.0"
