#!/usr/bin/python3
# Copyright 2024 VMware, Inc.
# SPDX-License-Identifier: Apache-2.0

from unittest import mock

import pytest

from bt_ec2.errors import ArchMismatch, FatalError, MalformedIdentity
from bt_ec2.params import (
    BuildIdentity,
    FlagSet,
    VersionClass,
    classify_version,
    derive_artifact_names,
    parse_identity,
    resolve_flags,
    validate_architecture,
)


CORE = BuildIdentity(app_name="core", version="16.2", codename="jessie", arch="amd64")

STABLE_VERSIONS = ["16.2", "15.0", "1", "0.0.1", "18.", "."]
NON_STABLE_VERSIONS = ["16.2rc1", "16.2-beta", "16.0b2", "v16.2", "", "16 2", "16.2\n"]


class TestParseIdentity:
    def test_four_fields(self):
        identity = parse_identity("core-16.2-jessie-amd64", lambda s: ["core", "16.2", "jessie", "amd64"])
        assert identity == CORE
        assert identity.app_name == "core"
        assert identity.arch == "amd64"

    def test_parser_gets_raw_token(self):
        parser = mock.Mock(return_value=("wordpress", "16.1rc1", "jessie", "amd64"))
        identity = parse_identity("wordpress-16.1rc1-jessie-amd64", parser)
        parser.assert_called_once_with("wordpress-16.1rc1-jessie-amd64")
        assert identity.version == "16.1rc1"

    @pytest.mark.parametrize("fields", [
        None,
        [],
        ["core", "16.2", "jessie"],
        ["core", "16.2", "jessie", "amd64", "extra"],
        ["core", "", "jessie", "amd64"],
        ["core", "16 2", "jessie", "amd64"],
        ["core", "16.2", "jessie", " amd64"],
    ])
    def test_malformed_parser_output(self, fields):
        with pytest.raises(MalformedIdentity):
            parse_identity("core-16.2-jessie-amd64", lambda s: fields)

    @pytest.mark.parametrize("raw", ["", "core 16.2", " ", None,
                                     " core-16.2-jessie-amd64", "core-16.2-jessie-amd64\n"])
    def test_malformed_token(self, raw):
        parser = mock.Mock(return_value=["core", "16.2", "jessie", "amd64"])
        with pytest.raises(MalformedIdentity):
            parse_identity(raw, parser)
        parser.assert_not_called()

    def test_malformed_is_fatal(self):
        with pytest.raises(FatalError):
            parse_identity("core", lambda s: None)


class TestClassifyVersion:
    @pytest.mark.parametrize("version", STABLE_VERSIONS)
    def test_stable(self, version):
        assert classify_version(version) is VersionClass.STABLE

    @pytest.mark.parametrize("version", NON_STABLE_VERSIONS)
    def test_non_stable(self, version):
        assert classify_version(version) is VersionClass.NON_STABLE


class TestResolveFlags:
    def setup_method(self):
        self.logger = mock.Mock()

    def test_increment_drops_secupdates(self):
        for version_class in VersionClass:
            flags = resolve_flags(FlagSet(secupdates=True, increment=True), version_class, self.logger)
            assert flags.secupdates is False
            assert flags.increment is True
        assert self.logger.warning.called

    def test_secupdates_alone_kept(self):
        flags = resolve_flags(FlagSet(secupdates=True), VersionClass.STABLE, self.logger)
        assert flags.secupdates is True
        self.logger.warning.assert_not_called()

    @pytest.mark.parametrize("copy", [True, False])
    @pytest.mark.parametrize("marketplace", [True, False])
    def test_non_stable_suppressed(self, copy, marketplace):
        raw = FlagSet(copy=copy, marketplace=marketplace, publish=True, pvmshim=True)
        flags = resolve_flags(raw, VersionClass.NON_STABLE, self.logger)
        assert flags.copy is False
        assert flags.marketplace is False
        # nothing else is touched
        assert flags.publish is True
        assert flags.pvmshim is True
        assert self.logger.warning.called == (copy or marketplace)

    def test_non_stable_warning_names_flags(self):
        resolve_flags(FlagSet(copy=True, marketplace=True), VersionClass.NON_STABLE, self.logger)
        msg = self.logger.warning.call_args[0][0]
        assert "--copy" in msg
        assert "--marketplace" in msg

    def test_non_stable_forced(self):
        raw = FlagSet(copy=True, marketplace=True, force=True)
        flags = resolve_flags(raw, VersionClass.NON_STABLE, self.logger)
        assert flags.copy is True
        assert flags.marketplace is True
        assert self.logger.warning.called

    @pytest.mark.parametrize("force", [True, False])
    @pytest.mark.parametrize("copy", [True, False])
    @pytest.mark.parametrize("marketplace", [True, False])
    def test_stable_passes_through(self, force, copy, marketplace):
        raw = FlagSet(copy=copy, marketplace=marketplace, force=force)
        flags = resolve_flags(raw, VersionClass.STABLE, self.logger)
        assert flags.copy == copy
        assert flags.marketplace == marketplace
        self.logger.warning.assert_not_called()

    def test_without_logger(self):
        flags = resolve_flags(FlagSet(copy=True, secupdates=True, increment=True), VersionClass.NON_STABLE)
        assert flags == FlagSet(increment=True)

    def test_input_not_mutated(self):
        raw = FlagSet(copy=True, secupdates=True, increment=True)
        resolve_flags(raw, VersionClass.NON_STABLE, self.logger)
        assert raw.copy is True
        assert raw.secupdates is True


class TestDeriveArtifactNames:
    def test_base_names(self):
        names = derive_artifact_names(CORE, False)
        assert names.tag == "16.2-jessie-amd64"
        assert names.name == "turnkey-core-16.2-jessie-amd64"
        assert names.rootfs == "turnkey-core-16.2-jessie-amd64.rootfs"
        assert names.cdroot == "turnkey-core-16.2-jessie-amd64.cdroot"
        assert names.iso == "turnkey-core-16.2-jessie-amd64.iso"
        assert names.log == "turnkey-core-16.2-jessie-amd64.log"
        assert names.buildenv == "turnkey-core-16.2-jessie-amd64.ec2.buildenv"

    def test_increment(self):
        names = derive_artifact_names(CORE, True)
        assert names.tag == "16.2.1-jessie-amd64"
        assert names.name == "turnkey-core-16.2.1-jessie-amd64"
        assert names.log == "turnkey-core-16.2.1-jessie-amd64.log"
        assert names.buildenv == "turnkey-core-16.2.1-jessie-amd64.ec2.buildenv"

    def test_increment_always_appends_one(self):
        first = derive_artifact_names(CORE, True)
        again = derive_artifact_names(CORE, True)
        assert first == again
        already = CORE._replace(version="16.2.1")
        assert derive_artifact_names(already, True).tag == "16.2.1.1-jessie-amd64"

    def test_name_override(self):
        names = derive_artifact_names(CORE, True, name="custom")
        assert names.tag == "16.2.1-jessie-amd64"
        assert names.name == "custom"
        assert names.rootfs == "custom.rootfs"
        assert names.buildenv == "custom.ec2.buildenv"


class TestValidateArchitecture:
    def test_match(self):
        assert validate_architecture(CORE, "amd64") is None

    @pytest.mark.parametrize("host_arch", ["i386", "arm64", "", None, "AMD64"])
    def test_mismatch(self, host_arch):
        with pytest.raises(ArchMismatch) as excinfo:
            validate_architecture(CORE, host_arch)
        assert excinfo.value.arch == "amd64"
        assert isinstance(excinfo.value, FatalError)
