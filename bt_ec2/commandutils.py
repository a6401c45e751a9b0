# /*
#  * Copyright © 2020-2024 VMware, Inc.
#  * SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-only
#  */
#

import glob
import os
import shutil
import subprocess
from urllib.parse import urlparse

import jc
import requests
import yaml


class CommandUtils(object):
    def __init__(self, logger):
        self.logger = logger

    def run_output(self, cmd, cwd=None):
        """
        Run cmd, stream its combined stdout/stderr to the logger and
        return a tuple (retval, output). A list is executed directly,
        a string is handed to the shell.
        """
        self.logger.info(f"running {cmd}")
        use_shell = not isinstance(cmd, list)
        out = ""
        try:
            with subprocess.Popen(
                cmd, shell=use_shell, text=True, cwd=cwd,
                stdout=subprocess.PIPE, stderr=subprocess.STDOUT
            ) as process:
                if process.stdout:
                    for line in process.stdout:
                        self.logger.info(line.rstrip())
                        out += line

                retval = process.wait()
        except (OSError, subprocess.SubprocessError) as e:
            self.logger.error(f"Subprocess error running {cmd}: {e}")
            return -1, out

        if retval != 0:
            self.logger.error(f"Command failed: {cmd}")
            self.logger.error(f"Error code: {retval}")

        return retval, out

    def run(self, cmd, cwd=None):
        retval, _ = self.run_output(cmd, cwd=cwd)
        return retval

    def run_in_chroot(self, chroot_path, cmd):
        return self.run(["chroot", chroot_path, "/bin/bash", "-c", cmd])

    def host_arch(self):
        """Native dpkg architecture of the build host, e.g. amd64"""
        retval, out = self.run_output(["dpkg", "--print-architecture"])
        if retval != 0:
            return None
        return out.strip()

    @staticmethod
    def get_mount_points():
        mounts = jc.parse("mount", subprocess.check_output(["mount"], text=True))
        return [m['mount_point'] for m in mounts]

    @staticmethod
    def is_mounted(path):
        """True if path itself or anything below it is a mount point."""
        path = os.path.abspath(path).rstrip("/")
        for mount_point in CommandUtils.get_mount_points():
            if mount_point == path or mount_point.startswith(path + "/"):
                return True
        return False

    # check if url is a URL (note: a file path is not a URL)
    @staticmethod
    def is_url(url):
        try:
            result = urlparse(url)
            return all([result.scheme, result.netloc])
        except ValueError:
            return False

    @staticmethod
    def download(url, out, enforce_https=True):
        try:
            u = urlparse(url)
        except ValueError:
            return False, "Failed to parse URL"
        if not all([u.scheme, u.netloc]):
            return False, "Invalid URL"
        if enforce_https and u.scheme != "https":
            return False, "URL must be of secure origin (HTTPS)"

        try:
            with requests.get(url, stream=True, timeout=30.0) as r:
                r.raise_for_status()
                r.raw.decode_content = True
                with open(out, "wb") as f:
                    shutil.copyfileobj(r.raw, f)
        except requests.RequestException as e:
            return False, f"Failed to download {url}: {e}"

        return True, None

    @staticmethod
    def _yaml_param(loader, node):
        params = loader.app_params
        default = None
        key = node.value

        assert type(key) is str, "param name must be a string"

        if '=' in key:
            key, default = [t.strip() for t in key.split('=', maxsplit=1)]

            if key in params:
                value = params[key]
            else:
                value = yaml.safe_load(default)
        else:
            assert key in params, f"no param set for '{key}', and there is no default"
            value = params[key]

        return value

    @staticmethod
    def readConfig(stream, params={}):
        class ParamLoader(yaml.SafeLoader):
            def __init__(self, stream):
                super().__init__(stream)
                self.app_params = params

        yaml.add_constructor("!param", CommandUtils._yaml_param, Loader=ParamLoader)
        config = yaml.load(stream, Loader=ParamLoader)

        return config

    def remove_files(self, file_list):
        """
        Remove files and directories matching the given glob patterns.

        Parameters:
        - file_list (list[str]): paths or glob patterns, e.g. "/tmp/build/*.rootfs"

        Returns:
        - None
        """
        for file_path in file_list:
            for file in glob.glob(file_path):
                if os.path.islink(file) or os.path.isfile(file):
                    os.unlink(file)
                elif os.path.isdir(file):
                    shutil.rmtree(file)
                else:
                    self.logger.info(f"File format not identified for: {file}")
