#!/usr/bin/env python3
#
# Copyright © 2024 VMware, Inc.
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-only
#
# pylint: disable=invalid-name,missing-docstring

import os
import shlex
import signal
import subprocess
import sys
from argparse import ArgumentParser

from bt_ec2.commandutils import CommandUtils
from bt_ec2.config import load_config, parse_params
from bt_ec2.defaults import Defaults
from bt_ec2.errors import FatalError, Interrupted, StepFailed, UsageError
from bt_ec2.logger import Logger
from bt_ec2.mounts import BindMounts
from bt_ec2.params import (
    FlagSet,
    classify_version,
    derive_artifact_names,
    parse_identity,
    resolve_flags,
    validate_architecture,
)
from bt_ec2.toolchain import Toolchain


class Ec2Builder(object):
    def __init__(self, config, appver, flags, logger=None, toolchain=None, cmd_util=None):
        self.config = config
        self.appver = appver
        self.raw_flags = flags
        self.logger = logger or Logger.get_logger(None, config.log_level, True)
        self.cmdUtil = cmd_util or CommandUtils(self.logger)
        self.toolchain = toolchain or Toolchain(
            logger=self.logger,
            bin_dir=config.bin_dir,
            patches_dir=config.patches_dir,
            cmd_util=self.cmdUtil,
        )

        self.identity = None
        self.flags = None
        self.source_names = None
        self.names = None
        self.mounts = None
        self._old_handlers = {}

    @property
    def output_dir(self):
        return self.config.output_dir

    def runStep(self, result, description):
        if not result:
            raise StepFailed(f"{description} failed", step=description)
        return result.result

    def path(self, filename):
        return os.path.join(self.output_dir, filename)

    def _parse_appver(self, appver):
        result = self.toolchain.parse_appname_version(appver)
        return result.result if result else None

    def resolve(self):
        """
        Work out identity, effective flags and artifact names. Nothing on
        disk is touched until this has succeeded.
        """
        self.config.validate(publish=self.raw_flags.publish)

        self.identity = parse_identity(self.appver, self._parse_appver)
        host_arch = self.cmdUtil.host_arch()
        if not host_arch:
            raise FatalError("could not determine host architecture")
        validate_architecture(self.identity, host_arch)

        version_class = classify_version(self.identity.version)
        self.logger.info(f"{self.identity.app_name} {self.identity.version} is {version_class.value}")
        self.flags = resolve_flags(self.raw_flags, version_class, self.logger)

        # the ISO and what tklpatch extracts from it always carry the original tag
        self.source_names = derive_artifact_names(self.identity, False)
        self.names = derive_artifact_names(self.identity, self.flags.increment, self.flags.name)

    def fetchIso(self):
        source_tag = self.source_names.tag
        app_name = self.identity.app_name
        self.logger.info(f"Downloading and verifying {self.source_names.iso}")
        self.runStep(self.toolchain.iso_download(self.config.isos, source_tag, app_name), "iso download")
        self.runStep(self.toolchain.iso_verify(self.config.isos, source_tag, app_name), "iso verify")

    def extractIso(self):
        iso_path = os.path.join(self.config.isos, self.source_names.iso)
        self.logger.info(f"Extracting {iso_path} in {self.output_dir}")
        self.runStep(self.toolchain.extract_iso(iso_path, self.output_dir), "iso extraction")

        for src, dst in [(self.source_names.rootfs, self.names.rootfs),
                         (self.source_names.cdroot, self.names.cdroot)]:
            if src != dst and os.path.exists(self.path(src)):
                self.logger.info(f"Renaming {src} to {dst}")
                os.rename(self.path(src), self.path(dst))

        if not os.path.isdir(self.path(self.names.rootfs)):
            raise FatalError(f"rootfs {self.path(self.names.rootfs)} not found after extraction")

    def stampVersion(self, rootfs):
        version_file = os.path.join(rootfs, Defaults.VERSION_FILE)
        self.logger.info(f"Setting {Defaults.VERSION_FILE} to {self.names.name}")
        os.makedirs(os.path.dirname(version_file), exist_ok=True)
        with open(version_file, "w", encoding="utf-8") as f:
            f.write(f"{self.names.name}\n")

    def patchRootfs(self):
        rootfs = self.path(self.names.rootfs)

        self.mounts = BindMounts(rootfs, self.cmdUtil, self.logger)
        with self.mounts:
            if self.flags.increment:
                self.runStep(self.toolchain.install_all_updates(rootfs), "installing updates")
                self.stampVersion(rootfs)
            elif self.flags.secupdates:
                self.runStep(self.toolchain.install_secupdates(rootfs), "installing security updates")

            self.runStep(self.toolchain.purge_packages(rootfs, self.config.purge_packages), "package purge")

            patches = list(Defaults.BASE_PATCHES)
            if self.flags.pvmshim:
                patches.append(Defaults.PVMSHIM_PATCH)
            for patch in patches:
                self.runStep(self.toolchain.apply_patch(rootfs, patch), f"applying patch {patch}")

            self.runStep(self.toolchain.rootfs_cleanup(rootfs), "rootfs cleanup")
        self.mounts = None

    def buildImage(self):
        rootfs = self.path(self.names.rootfs)
        self.logger.info(f"Building EBS image {self.names.name}")
        image = self.runStep(
            self.toolchain.build_image(rootfs, self.names.name, self.flags.pvmregister),
            "image build",
        )
        self.writeBuildenv(image or {})

    def writeBuildenv(self, image):
        env = {
            "APPNAME": self.identity.app_name,
            "VERSION": self.names.tag,
            "CODENAME": self.identity.codename,
            "ARCH": self.identity.arch,
            "NAME": self.names.name,
        }
        env.update(image)

        buildenv = self.path(self.names.buildenv)
        self.logger.info(f"Writing {buildenv}")
        with open(buildenv, "w", encoding="utf-8") as f:
            for key, value in env.items():
                f.write(f"{key}={shlex.quote(str(value))}\n")
        return buildenv

    def distribute(self):
        buildenv = self.path(self.names.buildenv)
        if self.flags.copy:
            self.runStep(self.toolchain.copy_image(buildenv), "copying image to all regions")
        if self.flags.marketplace:
            self.runStep(self.toolchain.share_marketplace(buildenv), "sharing image with marketplace")

    def publish(self):
        if not self.flags.publish:
            return
        logs_dest = f"{self.config.publish_logs.rstrip('/')}/{Defaults.BUILDS_SUBDIR}/"
        meta_dest = f"{self.config.publish_meta.rstrip('/')}/{Defaults.BUILDS_SUBDIR}/"
        self.runStep(self.toolchain.publish_files(logs_dest, [self.path(self.names.log)]), "publishing log")
        self.runStep(self.toolchain.publish_files(meta_dest, [self.path(self.names.buildenv)]), "publishing metadata")

    def cleanup(self):
        """
        Release mounts and remove the extracted trees. Safe to call at any
        point of the build, and more than once.
        """
        if self.mounts is not None:
            self.mounts.release()
            self.mounts = None

        if self.names is None:
            return

        if self.config.debug:
            self.logger.info(f"BT_DEBUG set, keeping {self.names.rootfs} and {self.names.cdroot}")
            return

        dirs = []
        for names in [self.names, self.source_names]:
            for d in [names.rootfs, names.cdroot]:
                if self.path(d) not in dirs:
                    dirs.append(self.path(d))

        for d in dirs:
            if not os.path.exists(d):
                continue
            try:
                mounted = CommandUtils.is_mounted(d)
            except (OSError, subprocess.CalledProcessError) as e:
                self.logger.warning(f"could not check mounts under {d}, not removing it: {e}")
                continue
            if mounted:
                self.logger.warning(f"{d} is still mounted, not removing it")
                continue
            self.logger.info(f"Removing {d}")
            self.cmdUtil.remove_files([d])

    def exit_gracefully(self, signum, frame):
        del frame
        self.logger.warning(f"received signal {signum} - cleaning up")
        raise Interrupted(signum)

    def _install_signal_handler(self):
        try:
            self._old_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, self.exit_gracefully)
        except ValueError:
            # not in the main thread, handlers can't be set
            self._old_handlers = {}

    def _restore_signal_handler(self):
        while self._old_handlers:
            signum, handler = self._old_handlers.popitem()
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)

    def build(self):
        self._install_signal_handler()
        try:
            self.resolve()

            os.makedirs(self.output_dir, exist_ok=True)
            Logger.add_log_file(self.logger, self.path(self.names.log))
            self.logger.info(f"Starting to build {self.names.name}")

            self.fetchIso()
            self.extractIso()
            self.patchRootfs()
            self.buildImage()
            self.distribute()
            self.publish()

            self.logger.info(f"Finished building {self.names.name}")
        finally:
            try:
                self.cleanup()
            finally:
                self._restore_signal_handler()


class BtArgumentParser(ArgumentParser):
    def error(self, message):
        raise UsageError(message)


def build_parser():
    parser = BtArgumentParser(
        prog=Defaults.PROGRAM,
        description="Converts appliance appname-version (build) to EC2 EBS AMI",
    )
    parser.add_argument(
        "appver",
        metavar="appname-version",
        help="<Required> appliance to convert, e.g. core-16.2-jessie-amd64",
    )
    parser.add_argument("--name", dest="name", default=None,
                        help="override name (i.e. rootfs and cdroot name)")
    parser.add_argument("--copy", action="store_true", help="copy image to all regions")
    parser.add_argument("--publish", action="store_true", help="publish log and metadata")
    parser.add_argument("--marketplace", action="store_true", help="share image with marketplace")
    parser.add_argument("--force", action="store_true",
                        help="force --copy/--marketplace even if version is not stable")
    parser.add_argument("--secupdates", action="store_true", help="install security updates")
    parser.add_argument("--increment", action="store_true",
                        help="install all updates and increment version (by .1)")
    parser.add_argument("--pvmshim", action="store_true", help="apply pvm shim")
    parser.add_argument("--pvmregister", action="store_true", help="register pvm image as well")
    parser.add_argument("-y", "--config", dest="config", default=None,
                        help="<Optional> path or URL of a YAML configuration file")
    parser.add_argument(
        "-m",
        "--param",
        dest="params",
        action="append",
        default=[],
        help="Specify a parameter value for the config file. Can be used multiple times.",
    )
    parser.add_argument("-l", "--log-level", dest="log_level", default=None)
    return parser


def main(argv=None):
    parser = build_parser()
    try:
        options = parser.parse_args(argv)
    except UsageError as e:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return 1

    logger = Logger.get_logger(None, options.log_level or Defaults.LOG_LEVEL, True)
    flags = FlagSet.from_options(options)
    if not flags.publish:
        logger.warning("--publish was not specified")

    try:
        config = load_config(
            options.config,
            params=parse_params(options.params),
            logger=logger,
            log_level=options.log_level,
        )
        Logger.set_level(logger, config.log_level)
        builder = Ec2Builder(config, options.appver, flags, logger=logger)
        builder.build()
    except (FatalError, OSError) as e:
        print(f"FATAL [{Defaults.PROGRAM}]: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print(f"FATAL [{Defaults.PROGRAM}]: interrupted", file=sys.stderr)
        return 1
    finally:
        Logger.close_log_files(logger)

    return 0


if __name__ == "__main__":
    sys.exit(main())
