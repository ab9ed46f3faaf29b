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
Models for service groups and their runtime-derived deployment state.
"""
from typing import Iterable, Optional
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator


class DeploymentState(str, Enum):
    """
    Observed state of a service group or of one of its containers.
    Always derived from the runtime, never cached.
    """
    ABSENT = "absent"
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    RESTARTING = "restarting"
    UNKNOWN = "unknown"

    @classmethod
    def from_container_state(cls, state: str, health: str = "") -> "DeploymentState":
        """
        Maps a container engine state string onto a DeploymentState.

        :param state: Engine state such as 'running', 'exited' or 'restarting'.
        :param health: Optional health status reported for the container.
        :return: The matching DeploymentState.
        """
        state = (state or "").strip().lower()
        health = (health or "").strip().lower()
        if state == "running":
            if health == "starting":
                return cls.STARTING
            return cls.RUNNING
        if state == "restarting":
            return cls.RESTARTING
        if state in ("created", "exited", "dead", "removing"):
            return cls.STOPPED
        return cls.UNKNOWN

    @classmethod
    def aggregate(cls, states: Iterable["DeploymentState"]) -> "DeploymentState":
        """
        Folds the states of a group's containers into one group state.

        A group with no containers is absent; any restarting container makes
        the group restarting; the group is running only when every container is.
        """
        states = list(states)
        if not states:
            return cls.ABSENT
        if cls.RESTARTING in states:
            return cls.RESTARTING
        if all(s == cls.RUNNING for s in states):
            return cls.RUNNING
        if cls.STARTING in states:
            return cls.STARTING
        if all(s == cls.STOPPED for s in states):
            return cls.STOPPED
        return cls.UNKNOWN


class ServiceGroup(BaseModel):
    """
    One deployable unit: a compose stack managed as a whole.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    # Relative to the repository checkout; None means the group has no definition.
    definition_path: Optional[str] = None
    start_order: int = Field(gt=0)
    # Compose project label; derived from the definition location when unset.
    compose_project: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("service group name must not be empty")
        return value
