# /*
#  * Copyright © 2020-2024 VMware, Inc.
#  * SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-only
#  */

class Defaults():
    BT_DIR = "/turnkey/buildtasks"
    BUILDS_SUBDIR = "ec2"
    LOG_LEVEL = "info"
    PROGRAM = "bt-ec2"
    BIND_MOUNTS = ["/proc", "/sys", "/dev"]
    BASE_PATCHES = ["headless", "ec2"]
    PVMSHIM_PATCH = "ec2-pvmshim"
    VERSION_FILE = "etc/turnkey_version"
    PURGE_PACKAGES = []
