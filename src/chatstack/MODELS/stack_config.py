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
Models for the overall stack configuration.
"""
import re
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from .service_group import ServiceGroup


class StackConfig(BaseModel):
    """
    Immutable configuration for the chatbot stack.
    Holds the fixed, ordered list of service groups and the shared resources.
    """
    model_config = ConfigDict(frozen=True)

    project_name: str = "chatbot"
    repo_url: str = "https://github.com/llymota/chatbot.git"
    repo_dir: str = "chatbot"
    branch: str = "main"

    network_name: str = "chatbot"
    network_driver: str = "bridge"
    volumes: List[str] = []
    groups: List[ServiceGroup] = []

    required_ports: List[int] = [80, 443]
    poll_interval: float = Field(default=5.0, gt=0)
    start_timeout: float = Field(default=1800.0, gt=0)

    env_file: str = ".env"
    # Extra substrings matched by the reset sweeps besides the group names.
    sweep_patterns: List[str] = ["postgres"]
    # Globs removed from the checkout by reset when the checkout itself is kept.
    generated_artifacts: List[str] = [".env", "**/.env", "*.log", "**/*.log", "logs", ".cache"]

    @model_validator(mode="after")
    def _check_groups(self) -> "StackConfig":
        names = [g.name for g in self.groups]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate service group names: {', '.join(duplicates)}")
        orders = [g.start_order for g in self.groups]
        if len(set(orders)) != len(orders):
            raise ValueError("service group start orders must be unique")
        if self.start_timeout < self.poll_interval:
            raise ValueError("start_timeout must not be shorter than poll_interval")
        return self

    def ordered_groups(self) -> List[ServiceGroup]:
        """
        Groups in bring-up order (ascending start order).
        """
        return sorted(self.groups, key=lambda g: g.start_order)

    def teardown_groups(self) -> List[ServiceGroup]:
        """
        Groups in teardown order, the exact reverse of bring-up.
        """
        return list(reversed(self.ordered_groups()))

    @property
    def repo_path(self) -> Path:
        return Path(self.repo_dir).expanduser().absolute()

    @property
    def env_path(self) -> Path:
        return self.repo_path / self.env_file

    def definition_for(self, group: ServiceGroup) -> Optional[Path]:
        """
        Resolves the stack definition of a group inside the repository checkout.

        :param group: The service group.
        :return: Absolute path of the definition, or None when the group declares none.
        """
        if not group.definition_path:
            return None
        return self.repo_path / group.definition_path

    def compose_project_for(self, group: ServiceGroup) -> str:
        """
        Returns the compose project name a group's containers are labelled with.
        Follows compose's own default: the directory holding the definition file.
        """
        if group.compose_project:
            return _normalize_project(group.compose_project)
        definition = self.definition_for(group)
        if definition is None:
            return _normalize_project(group.name)
        return _normalize_project(definition.parent.name)

    def sweep_names(self) -> List[str]:
        """
        Name substrings used by reset to catch resources the stack definitions missed.
        """
        names: List[str] = []
        for candidate in [g.name for g in self.ordered_groups()] + list(self.sweep_patterns):
            if candidate and candidate not in names:
                names.append(candidate)
        return names


def _normalize_project(name: str) -> str:
    # compose project names: lowercase alphanumerics, dashes and underscores
    return re.sub(r"[^a-z0-9_-]", "", name.lower())


def default_stack(**overrides) -> StackConfig:
    """
    The chatbot stack as deployed by default.

    Order encodes the dependency edges: proxy before everything, cache before
    the platform using it, platform before the bots that call it.
    """
    groups = [
        ServiceGroup(name="traefik", definition_path="docker-compose.yml", start_order=1),
        ServiceGroup(name="redis", definition_path="redis/docker-compose.redis.yml", start_order=2),
        ServiceGroup(name="supabase", definition_path="supabase/docker-compose.supabase.yml", start_order=3),
        ServiceGroup(name="supabase-s3", definition_path="supabase/docker-compose.s3.yml",
                     start_order=4, compose_project="supabase-s3"),
        ServiceGroup(name="n8n", definition_path="n8n/docker-compose.n8n.yml", start_order=5),
        ServiceGroup(name="typebot", definition_path="typebot/docker-compose.typebot.yml", start_order=6),
    ]
    values = {
        "groups": groups,
        "volumes": ["traefik_letsencrypt", "redis_data", "n8n_data", "typebot_data"],
    }
    values.update(overrides)
    return StackConfig(**values)
