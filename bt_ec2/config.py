# /*
# * Copyright © 2024 VMware, Inc.
# * SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-only
# */

import os
import tempfile
from collections import namedtuple

import yaml

from bt_ec2.commandutils import CommandUtils
from bt_ec2.defaults import Defaults
from bt_ec2.errors import ConfigError


# config key -> environment variable overriding it
ENVIRONMENT = {
    "bt_dir": "BT",
    "builds": "BT_BUILDS",
    "isos": "BT_ISOS",
    "publish_meta": "BT_PUBLISH_META",
    "publish_logs": "BT_PUBLISH_LOGS",
    "debug": "BT_DEBUG",
}


class BuildConfig(namedtuple("BuildConfig", [
        "bt_dir", "builds", "isos", "publish_meta", "publish_logs",
        "debug", "purge_packages", "log_level"])):
    """
    Immutable build configuration. Passed explicitly to everything that
    needs a path or a setting instead of being read from the environment.
    """
    __slots__ = ()

    @property
    def bin_dir(self):
        return os.path.join(self.bt_dir, "bin")

    @property
    def patches_dir(self):
        return os.path.join(self.bt_dir, "patches")

    @property
    def output_dir(self):
        if not self.builds:
            return None
        return os.path.join(self.builds, Defaults.BUILDS_SUBDIR)

    def validate(self, publish=False):
        required = ["builds", "isos"]
        if publish:
            required.extend(["publish_meta", "publish_logs"])

        for key in required:
            if not getattr(self, key):
                raise ConfigError(f"{ENVIRONMENT[key]} not set")


def _as_bool(value):
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "no", "false", "off")
    return bool(value)


def parse_params(param_list):
    params = {}
    for p in param_list:
        if '=' not in p:
            raise ConfigError(f"invalid parameter '{p}', expected key=value")
        k, v = p.split('=', maxsplit=1)
        params[k] = yaml.safe_load(v)
    return params


def read_config_file(config_file, params=None, logger=None):
    """
    Read a YAML config file, or download it first if given as a URL.
    Returns the parsed dictionary (empty if the file is empty).
    """
    temp_file_path = None
    if CommandUtils.is_url(config_file):
        _, temp_file_path = tempfile.mkstemp(prefix="bt-ec2-", suffix="-config")
        if logger is not None:
            logger.info(f"downloading config {config_file}")
        retval, msg = CommandUtils.download(config_file, temp_file_path)
        if not retval:
            os.unlink(temp_file_path)
            raise ConfigError(f"Error - {msg}")
        config_file = temp_file_path

    try:
        if not os.path.isfile(config_file):
            raise ConfigError(f"config file {config_file} not found")
        with open(config_file, "r") as f:
            config = CommandUtils.readConfig(f, params=params or {})
    except (AssertionError, yaml.YAMLError) as e:
        raise ConfigError(f"invalid config file {config_file}: {e}")
    finally:
        if temp_file_path:
            os.unlink(temp_file_path)

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError(f"config file {config_file} must contain a mapping")
    return config


def load_config(config_file=None, params=None, environ=None, logger=None, **overrides):
    """
    Build a BuildConfig from (lowest to highest precedence) the defaults,
    the optional YAML config file, environment variables and explicit
    keyword overrides (e.g. from the command line).
    """
    if environ is None:
        environ = os.environ

    values = {
        "bt_dir": Defaults.BT_DIR,
        "builds": None,
        "isos": None,
        "publish_meta": None,
        "publish_logs": None,
        "debug": False,
        "purge_packages": list(Defaults.PURGE_PACKAGES),
        "log_level": Defaults.LOG_LEVEL,
    }

    if config_file:
        for key, value in read_config_file(config_file, params, logger).items():
            if key not in values:
                raise ConfigError(f"unknown config key '{key}' in {config_file}")
            values[key] = value

    for key, env in ENVIRONMENT.items():
        if environ.get(env):
            values[key] = environ[env]

    for key, value in overrides.items():
        if value is not None:
            values[key] = value

    values["debug"] = _as_bool(values["debug"])
    if isinstance(values["purge_packages"], str):
        values["purge_packages"] = values["purge_packages"].split()
    values["purge_packages"] = tuple(values["purge_packages"] or ())

    return BuildConfig(**values)
