# /*
# * Copyright © 2024 VMware, Inc.
# * SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-only
# */
# pylint: disable=invalid-name

"""
Build parameters: identity of the appliance being converted, the flags that
survive version policy, and the names of everything the build produces.
"""

import re
from collections import namedtuple
from enum import Enum

from bt_ec2.errors import ArchMismatch, MalformedIdentity


STABLE_VERSION_RE = re.compile(r"^[0-9.]+$")
INCREMENT_SUFFIX = ".1"


BuildIdentity = namedtuple("BuildIdentity", ["app_name", "version", "codename", "arch"])

ArtifactNames = namedtuple(
    "ArtifactNames", ["tag", "name", "rootfs", "cdroot", "iso", "log", "buildenv"]
)


class VersionClass(Enum):
    STABLE = "stable"
    NON_STABLE = "non-stable"


class FlagSet(namedtuple("FlagSet", [
        "copy", "marketplace", "publish", "force", "secupdates",
        "increment", "pvmshim", "pvmregister", "name"])):
    __slots__ = ()

    def __new__(cls, copy=False, marketplace=False, publish=False, force=False,
                secupdates=False, increment=False, pvmshim=False,
                pvmregister=False, name=None):
        return super().__new__(cls, copy, marketplace, publish, force,
                               secupdates, increment, pvmshim, pvmregister, name)

    @classmethod
    def from_options(cls, options):
        return cls(**{field: getattr(options, field) for field in cls._fields})


# flags after resolve_flags() has applied the policy
EffectiveFlagSet = FlagSet


def parse_identity(raw, parser):
    """
    Split an appname-version token into a BuildIdentity.

    parser is the helper doing the actual split; it gets the raw token and
    returns its fields (any sequence). Exactly four non-empty fields without
    whitespace are accepted.
    """
    if not raw or raw != raw.strip() or len(raw.split()) != 1:
        raise MalformedIdentity(f"invalid appname-version: {raw!r}")

    fields = parser(raw)
    if fields is None:
        raise MalformedIdentity(f"could not parse appname-version: {raw}")

    fields = list(fields)
    if len(fields) != 4 or not all(f and len(f.split()) == 1 and f == f.strip() for f in fields):
        raise MalformedIdentity(f"could not parse appname-version: {raw} (got {fields})")

    return BuildIdentity(*fields)


def classify_version(version):
    if STABLE_VERSION_RE.fullmatch(version):
        return VersionClass.STABLE
    return VersionClass.NON_STABLE


def resolve_flags(raw, version_class, logger=None):
    flags = raw

    if flags.secupdates and flags.increment:
        _warn(logger, "--increment installs all updates (implies --secupdates); ignoring --secupdates")
        flags = flags._replace(secupdates=False)

    if version_class is VersionClass.NON_STABLE:
        requested = [f"--{f}" for f in ("copy", "marketplace") if getattr(flags, f)]
        if not flags.force:
            if requested:
                _warn(logger, f"{' '.join(requested)} ignored: version is not stable (use --force to override)")
            flags = flags._replace(copy=False, marketplace=False)
        elif requested:
            _warn(logger, f"{' '.join(requested)} honored despite non-stable version (--force)")

    return flags


def derive_artifact_names(identity, increment, name=None):
    version = identity.version
    if increment:
        # always the literal .1 - not a counter across runs
        version += INCREMENT_SUFFIX

    tag = f"{version}-{identity.codename}-{identity.arch}"
    if not name:
        name = f"turnkey-{identity.app_name}-{tag}"

    return ArtifactNames(
        tag=tag,
        name=name,
        rootfs=f"{name}.rootfs",
        cdroot=f"{name}.cdroot",
        iso=f"{name}.iso",
        log=f"{name}.log",
        buildenv=f"{name}.ec2.buildenv",
    )


def validate_architecture(identity, host_arch):
    if identity.arch != host_arch:
        raise ArchMismatch(identity.arch, host_arch)


def _warn(logger, msg):
    if logger is not None:
        logger.warning(msg)
