#!/usr/bin/python3
# Copyright 2024 VMware, Inc.
# SPDX-License-Identifier: Apache-2.0

import os
import shutil
import tempfile
from unittest import mock

import pytest

from bt_ec2.config import load_config, parse_params, read_config_file
from bt_ec2.defaults import Defaults
from bt_ec2.errors import ConfigError


CONFIG_YAML = """
builds: /srv/builds
isos: !param isos=/srv/isos
publish_meta: s3://meta.example.com
publish_logs: !param logs
purge_packages:
  - open-vm-tools
  - di-live
"""


class TestLoadConfig:
    def setup_method(self):
        self.dir = tempfile.mkdtemp(prefix="bt-ec2-test-")
        self.config_file = os.path.join(self.dir, "ec2.yaml")
        with open(self.config_file, "w") as f:
            f.write(CONFIG_YAML)

    def teardown_method(self):
        shutil.rmtree(self.dir)

    def test_defaults(self):
        config = load_config(environ={})
        assert config.bt_dir == Defaults.BT_DIR
        assert config.builds is None
        assert config.debug is False
        assert config.purge_packages == ()
        assert config.bin_dir == os.path.join(Defaults.BT_DIR, "bin")
        assert config.patches_dir == os.path.join(Defaults.BT_DIR, "patches")

    def test_from_environment(self):
        config = load_config(environ={
            "BT": "/opt/bt",
            "BT_BUILDS": "/b",
            "BT_ISOS": "/i",
            "BT_DEBUG": "y",
        })
        assert config.bt_dir == "/opt/bt"
        assert config.builds == "/b"
        assert config.isos == "/i"
        assert config.output_dir == "/b/ec2"
        assert config.debug is True

    def test_debug_off_values(self):
        for value in ["0", "no", "false"]:
            assert load_config(environ={"BT_DEBUG": value}).debug is False

    def test_config_file_with_params(self):
        config = load_config(self.config_file, params={"logs": "s3://logs.example.com"}, environ={})
        assert config.builds == "/srv/builds"
        assert config.isos == "/srv/isos"
        assert config.publish_logs == "s3://logs.example.com"
        assert config.purge_packages == ("open-vm-tools", "di-live")

    def test_environment_overrides_file(self):
        config = load_config(self.config_file, params={"logs": "x", "isos": "/p"},
                             environ={"BT_BUILDS": "/env/builds"})
        assert config.builds == "/env/builds"
        assert config.isos == "/p"

    def test_explicit_overrides(self):
        config = load_config(environ={"BT_BUILDS": "/b"}, builds="/cli", log_level=None)
        assert config.builds == "/cli"
        assert config.log_level == Defaults.LOG_LEVEL

    def test_missing_param(self):
        with pytest.raises(ConfigError):
            load_config(self.config_file, environ={})

    def test_unknown_key(self):
        with open(self.config_file, "w") as f:
            f.write("bogus: 1\n")
        with pytest.raises(ConfigError):
            load_config(self.config_file, environ={})

    def test_missing_file(self):
        with pytest.raises(ConfigError):
            load_config(os.path.join(self.dir, "nope.yaml"), environ={})

    def test_empty_file(self):
        with open(self.config_file, "w") as f:
            f.write("")
        assert read_config_file(self.config_file) == {}

    def test_remote_config(self):
        def fake_download(url, out):
            with open(out, "w") as f:
                f.write("builds: /remote\n")
            return True, None

        with mock.patch("bt_ec2.config.CommandUtils.download", side_effect=fake_download) as download:
            config = load_config("https://example.com/ec2.yaml", environ={})
        assert download.call_args[0][0] == "https://example.com/ec2.yaml"
        assert config.builds == "/remote"
        assert not os.path.exists(download.call_args[0][1])

    def test_remote_config_failure(self):
        with mock.patch("bt_ec2.config.CommandUtils.download", return_value=(False, "404")):
            with pytest.raises(ConfigError):
                load_config("https://example.com/ec2.yaml", environ={})


class TestValidate:
    def test_required(self):
        with pytest.raises(ConfigError, match="BT_BUILDS"):
            load_config(environ={"BT_ISOS": "/i"}).validate()
        with pytest.raises(ConfigError, match="BT_ISOS"):
            load_config(environ={"BT_BUILDS": "/b"}).validate()

    def test_publish_settings_only_when_publishing(self):
        config = load_config(environ={"BT_BUILDS": "/b", "BT_ISOS": "/i"})
        config.validate(publish=False)
        with pytest.raises(ConfigError, match="BT_PUBLISH_META"):
            config.validate(publish=True)

        config = config._replace(publish_meta="s3://m")
        with pytest.raises(ConfigError, match="BT_PUBLISH_LOGS"):
            config.validate(publish=True)

        config._replace(publish_logs="s3://l").validate(publish=True)


class TestParseParams:
    def test_yaml_values(self):
        assert parse_params(["a=1", "b=foo", "c=x=y"]) == {"a": 1, "b": "foo", "c": "x=y"}

    def test_invalid(self):
        with pytest.raises(ConfigError):
            parse_params(["novalue"])
