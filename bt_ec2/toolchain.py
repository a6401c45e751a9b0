# /*
# * Copyright © 2024 VMware, Inc.
# * SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-only
# */
# pylint: disable=missing-docstring

import os
import re
import shlex

from bt_ec2.actionresult import ActionResult
from bt_ec2.commandutils import CommandUtils


BUILDENV_LINE_RE = re.compile(r"^([A-Z][A-Z0-9_]*)=(.*)$")


def parse_key_values(output):
    """
    Collect KEY=value lines from helper output, ignoring everything else.
    Surrounding quotes of a value are stripped.
    """
    values = {}
    for line in output.splitlines():
        m = BUILDENV_LINE_RE.match(line.strip())
        if m:
            key, value = m.groups()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                value = value[1:-1]
            values[key] = value
    return values


class Toolchain:
    """
    Calls into the external programs doing the actual work. Nothing here
    interprets the programs' behaviour beyond their exit status and,
    where noted, their output.
    """

    def __init__(self, **kwargs):
        known_kw = [
            "logger",
            "bin_dir",
            "patches_dir",
            "cmd_util",
        ]
        for key in kwargs:
            if key not in known_kw:
                raise KeyError(f"Not a known keyword: {key}")

        self.logger = kwargs["logger"]
        self.bin_dir = kwargs["bin_dir"]
        self.patches_dir = kwargs["patches_dir"]
        self.cmd_util = kwargs.get("cmd_util") or CommandUtils(self.logger)

    def _bin(self, program):
        return os.path.join(self.bin_dir, program)

    def _result(self, retval, result=None):
        return ActionResult(retval == 0, result)

    def parse_appname_version(self, appver):
        retval, out = self.cmd_util.run_output([self._bin("parse-appname-version"), appver])
        if retval != 0:
            return ActionResult(False, None)
        return ActionResult(True, out.split())

    def iso_download(self, isos, tag, app_name):
        return self._result(self.cmd_util.run([self._bin("iso-download"), isos, tag, app_name]))

    def iso_verify(self, isos, tag, app_name):
        return self._result(self.cmd_util.run([self._bin("iso-verify"), isos, tag, app_name]))

    def extract_iso(self, iso_path, outdir):
        return self._result(self.cmd_util.run(["tklpatch-extract-iso", iso_path], cwd=outdir))

    def install_secupdates(self, rootfs):
        return self._result(self.cmd_util.run_in_chroot(rootfs, "turnkey-install-security-updates"))

    def install_all_updates(self, rootfs):
        cmd = (
            "apt-get update && "
            "DEBIAN_FRONTEND=noninteractive apt-get -y "
            "-o Dpkg::Options::=--force-confdef -o Dpkg::Options::=--force-confold "
            "dist-upgrade"
        )
        return self._result(self.cmd_util.run_in_chroot(rootfs, cmd))

    def purge_packages(self, rootfs, packages):
        if not packages:
            return ActionResult(True, [])
        cmd = "dpkg --purge " + " ".join(shlex.quote(p) for p in packages)
        return self._result(self.cmd_util.run_in_chroot(rootfs, cmd), list(packages))

    def apply_patch(self, rootfs, patch):
        patch_dir = os.path.join(self.patches_dir, patch)
        return self._result(self.cmd_util.run(["tklpatch-apply", rootfs, patch_dir]), patch)

    def rootfs_cleanup(self, rootfs):
        return self._result(self.cmd_util.run([self._bin("rootfs-cleanup"), rootfs]))

    def build_image(self, rootfs, name, pvmregister=False):
        """
        Convert rootfs into an EBS backed image. The helper reports what it
        created (AMI ids, snapshot id, region) as KEY=value lines, which are
        returned as a dictionary.
        """
        cmd = [self._bin("ec2-bundle-ebs"), rootfs, name]
        if pvmregister:
            cmd.append("--pvmregister")
        retval, out = self.cmd_util.run_output(cmd)
        return self._result(retval, parse_key_values(out))

    def copy_image(self, buildenv):
        return self._result(self.cmd_util.run([self._bin("ec2-copy"), buildenv]))

    def share_marketplace(self, buildenv):
        return self._result(self.cmd_util.run([self._bin("ec2-share-marketplace"), buildenv]))

    def publish_files(self, dest, files):
        return self._result(self.cmd_util.run([self._bin("publish-files"), dest] + list(files)))
