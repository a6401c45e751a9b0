# /*
# * Copyright © 2024 VMware, Inc.
# * SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-only
# */


class BuildError(Exception):
    """Base exception for bt-ec2 errors"""
    pass


class UsageError(BuildError):
    """Raised for bad or missing command line arguments"""
    pass


class FatalError(BuildError):
    """Raised when a precondition is unmet or a required step fails"""
    pass


class MalformedIdentity(FatalError):
    """Raised when an appname-version token does not yield four fields"""
    pass


class ArchMismatch(FatalError):
    """Raised when the build architecture differs from the host architecture"""
    def __init__(self, arch, host_arch):
        super().__init__(f"architecture mismatch: build is {arch}, host is {host_arch}")
        self.arch = arch
        self.host_arch = host_arch


class ConfigError(FatalError):
    """Raised when required configuration is missing"""
    pass


class StepFailed(FatalError):
    """Raised when an external helper program fails"""
    def __init__(self, message, step=None):
        super().__init__(message)
        self.step = step


class Interrupted(FatalError):
    """Raised from the signal handler when a termination signal arrives"""
    def __init__(self, signum):
        super().__init__(f"received signal {signum}")
        self.signum = signum
