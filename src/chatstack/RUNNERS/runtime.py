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
The container runtime collaborator.

The orchestrator never touches containers, volumes or networks itself; it
asks a Runtime for every query and every state change. Failing commands
raise RuntimeCommandError.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from ..MODELS.service_group import DeploymentState


@dataclass(frozen=True)
class StackRef:
    """
    Everything a runtime needs to address one compose stack.
    The working directory travels with the reference instead of living in the process.
    """

    definition: Path
    cwd: Path
    project: str


@dataclass(frozen=True)
class ContainerFilter:
    """Selects containers by any combination of name, network, status and compose project."""

    name_pattern: Optional[str] = None
    network: Optional[str] = None
    status: Optional[str] = None
    compose_project: Optional[str] = None


class Runtime(ABC):
    """
    Primitive operations of a container engine.
    """

    # Networks

    @abstractmethod
    def network_exists(self, name: str) -> bool:
        ...

    @abstractmethod
    def create_network(self, name: str, driver: str = "bridge"):
        ...

    @abstractmethod
    def remove_network(self, name: str):
        ...

    @abstractmethod
    def list_networks(self, name_pattern: Optional[str] = None) -> List[str]:
        ...

    # Volumes

    @abstractmethod
    def volume_exists(self, name: str) -> bool:
        ...

    @abstractmethod
    def create_volume(self, name: str):
        ...

    @abstractmethod
    def list_volumes(self, name_pattern: Optional[str] = None) -> List[str]:
        ...

    @abstractmethod
    def remove_volumes(self, names: List[str]):
        ...

    @abstractmethod
    def prune_dangling_volumes(self):
        ...

    # Stacks

    @abstractmethod
    def definition_exists(self, stack: StackRef) -> bool:
        ...

    @abstractmethod
    def stack_status(self, stack: StackRef) -> Dict[str, DeploymentState]:
        """
        Returns the state of every container the stack currently has, keyed by service.
        """

    @abstractmethod
    def stack_up(self, stack: StackRef):
        ...

    @abstractmethod
    def stack_down(self, stack: StackRef, remove_volumes: bool = False, remove_orphans: bool = False):
        ...

    @abstractmethod
    def stack_restart(self, stack: StackRef):
        ...

    # Containers

    @abstractmethod
    def list_containers(self, selector: ContainerFilter) -> List[str]:
        """
        Returns the ids of all containers, running or not, matching the filter.
        """

    @abstractmethod
    def remove_containers(self, container_ids: List[str], force: bool = False):
        ...

    # Images

    @abstractmethod
    def list_images(self, repo_pattern: str) -> List[str]:
        ...

    @abstractmethod
    def remove_images(self, image_refs: List[str]):
        ...

    @abstractmethod
    def prune_dangling_images(self):
        ...

    @abstractmethod
    def system_prune(self, all_images: bool = True, volumes: bool = True):
        ...
