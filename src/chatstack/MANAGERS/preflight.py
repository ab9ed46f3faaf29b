"""
Host checks run before deploying the stack.
"""
import logging
import os
import shutil
import sys
from typing import Callable, Iterable, List, Optional

from ..errors import DependencyInstallFailed, PreflightFailed
from ..MODELS.stack_config import StackConfig
from ..RUNNERS.command_runner import CommandRunner
from ..UTILS.port_finder import bound_ports

logger = logging.getLogger(__name__)

CONTAINER_MARKER = "/.dockerenv"


def _effective_uid() -> int:
    return os.geteuid() if hasattr(os, "geteuid") else -1


class Preflight:
    """
    Verifies the host can run the stack: privileges, platform, ports and tools.
    """
    def __init__(self,
                 config: StackConfig,
                 runner: Optional[CommandRunner] = None,
                 euid: Callable[[], int] = _effective_uid,
                 platform: str = sys.platform,
                 container_marker: str = CONTAINER_MARKER,
                 port_probe: Callable[[Iterable[int]], List[int]] = bound_ports,
                 which: Callable[[str], Optional[str]] = shutil.which):
        self.config = config
        self.runner = runner or CommandRunner()
        self.euid = euid
        self.platform = platform
        self.container_marker = container_marker
        self.port_probe = port_probe
        self.which = which

    def check_host(self):
        """
        :raises PreflightFailed: If not root, not Linux, inside a container, or a required port is bound.
        """
        if self.euid() != 0:
            raise PreflightFailed("This command must be run as root")
        if not self.platform.startswith("linux"):
            raise PreflightFailed(f"This command must be run on Linux, not {self.platform}")
        if os.path.exists(self.container_marker):
            raise PreflightFailed("This command must be run on the host, not inside a container")
        taken = self.port_probe(self.config.required_ports)
        if taken:
            ports = ", ".join(str(p) for p in taken)
            raise PreflightFailed(f"Something is already running on port {ports}")
        logger.info("Host checks passed")

    def check_tools(self):
        """
        :raises DependencyInstallFailed: If docker, compose or git is missing.
        """
        if not self.which("docker"):
            raise DependencyInstallFailed("docker", "see https://docs.docker.com/engine/install/")
        if not self.which("docker-compose"):
            plugin = self.runner.run(["docker", "compose", "version"], check=False)
            if plugin.returncode != 0:
                raise DependencyInstallFailed("docker compose", "install the compose plugin or docker-compose")
        if not self.which("git"):
            raise DependencyInstallFailed("git")
        logger.info("Docker, compose and git are installed")

    def run(self):
        self.check_host()
        self.check_tools()
