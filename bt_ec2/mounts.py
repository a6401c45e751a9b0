# /*
# * Copyright © 2024 VMware, Inc.
# * SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-only
# */

import os
import signal

from bt_ec2.defaults import Defaults
from bt_ec2.errors import Interrupted, StepFailed


class BindMounts(object):
    """
    Bind mount the host's /proc, /sys and /dev into a root filesystem for
    the lifetime of a with block.

    Everything that was mounted is unmounted again when the block is left,
    whether normally, by an exception or by SIGINT/SIGTERM. Unmount
    failures are logged and otherwise ignored.
    """

    def __init__(self, root, cmd_util, logger, sources=None):
        self.root = os.path.abspath(root)
        self.cmd = cmd_util
        self.logger = logger
        self.sources = list(sources or Defaults.BIND_MOUNTS)
        self.mounts = []
        self._old_handlers = {}

    def __enter__(self):
        self._install_signal_handlers()
        try:
            for src in self.sources:
                self._mount(src)
        except BaseException:
            self.release()
            raise
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.release()
        return False

    def _mountpoint(self, src):
        mntpoint = os.path.normpath(os.path.join(self.root, src.strip("/")))
        if not mntpoint.startswith(self.root + "/"):
            raise StepFailed(f"mountpoint {mntpoint} is outside {self.root}", step="mount")
        return mntpoint

    def _mount(self, src):
        mntpoint = self._mountpoint(src)
        self.logger.info(f"mounting {src} to {mntpoint}")
        os.makedirs(mntpoint, exist_ok=True)

        retval = self.cmd.run(["mount", "--bind", "--make-rslave", src, mntpoint])
        if retval:
            raise StepFailed(f"Failed to mount {src} to {mntpoint}", step="mount")
        self.mounts.append(mntpoint)

    def _on_signal(self, signum, frame):
        del frame
        self.logger.warning(f"received signal {signum} - cleaning up")
        raise Interrupted(signum)

    def _install_signal_handlers(self):
        try:
            self._old_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, self._on_signal)
        except ValueError:
            # not in the main thread, handlers can't be set
            self._old_handlers = {}

    def _restore_signal_handlers(self):
        while self._old_handlers:
            signum, handler = self._old_handlers.popitem()
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)

    def release(self):
        while self.mounts:
            # popped only once umount returned, so an interrupted release can be retried
            d = self.mounts[-1]
            retval = self.cmd.run(["umount", "-l", d])
            if retval != 0:
                self.logger.error(f"Failed to unmount {d}")
            self.mounts.pop()
        self._restore_signal_handlers()
