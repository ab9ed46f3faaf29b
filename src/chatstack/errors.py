# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Error taxonomy for chatstack operations.

Fail-fast operations (bring-up, deploy preflight) raise these errors.
Fail-soft operations (teardown, restart, reset) record them in an
OperationReport instead of raising.
"""
from typing import Optional, Sequence


class ChatstackError(Exception):
    """Base exception for chatstack."""
    pass


class StackConfigError(ChatstackError):
    """The stack configuration file is malformed or inconsistent."""
    pass


class PreflightFailed(ChatstackError):
    """
    The host is not fit to run the stack.

    Raised when not running as root, when not on Linux, when running
    inside a container, or when a required port is already bound.
    """
    pass


class DependencyInstallFailed(ChatstackError):
    """A required host tool (docker, compose, git) is not available."""

    def __init__(self, tool: str, hint: str = ""):
        self.tool = tool
        message = f"Required tool '{tool}' is not installed"
        if hint:
            message = f"{message}: {hint}"
        super().__init__(message)


class RepositoryFetchFailed(ChatstackError):
    """Cloning or updating the stack repository failed."""
    pass


class NetworkCreateFailed(ChatstackError):
    """The shared network could not be created or verified."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Network '{name}' could not be created: {reason}")


class VolumeCreateFailed(ChatstackError):
    """A named volume could not be created."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Volume '{name}' could not be created: {reason}")


class StackDefinitionMissing(ChatstackError):
    """A service group has no stack definition file to start from."""

    def __init__(self, group: str, path: Optional[str]):
        self.group = group
        self.path = path
        super().__init__(f"Stack definition for '{group}' not found: {path or '<unset>'}")


class GroupStartFailed(ChatstackError):
    """The runtime reported a failure while starting a service group."""

    def __init__(self, group: str, reason: str):
        self.group = group
        self.reason = reason
        super().__init__(f"Failed to start '{group}': {reason}")


class GroupStartTimeout(ChatstackError):
    """No container of a service group appeared before the start ceiling."""

    def __init__(self, group: str, elapsed: float, attempts: int):
        self.group = group
        self.elapsed = elapsed
        self.attempts = attempts
        super().__init__(
            f"Timeout reached: '{group}' did not start within {elapsed:g}s "
            f"({attempts} checks)"
        )


class GroupStopFailed(ChatstackError):
    """A service group could not be stopped. Reported, never fatal."""

    def __init__(self, group: str, reason: str):
        self.group = group
        self.reason = reason
        super().__init__(f"Failed to stop '{group}': {reason}")


class ResetConfirmationDeclined(ChatstackError):
    """The operator did not confirm a reset. Not an error for the exit status."""
    pass


class RuntimeCommandError(ChatstackError):
    """A container runtime command exited unsuccessfully."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = self.stderr or f"exit status {returncode}"
        super().__init__(f"`{' '.join(self.command)}` failed: {detail}")
