# /*
#  * Copyright © 2020 VMware, Inc.
#  * SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-only
#  */
#

# ActionResult is returned by every helper program call.
# result carries whatever the call produced (output, parsed values)
class ActionResult(object):
    def __init__(self, success, result=None):
        self.success = success
        self.result = result

    def __bool__(self):
        return self.success

    def __repr__(self):
        return f"ActionResult(success={self.success}, result={self.result!r})"
