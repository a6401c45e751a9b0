#/*
# * Copyright © 2020-2024 VMware, Inc.
# * SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-only
# */
import sys

from bt_ec2.ec2builder import main

if __name__ == '__main__':
    sys.exit(main())
