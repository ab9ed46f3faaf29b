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
Parser for chatstack stack files (YAML).

A stack file overrides the built-in chatbot stack. Example::

    project_name: chatbot
    repository:
      url: https://github.com/llymota/chatbot.git
      dir: /opt/chatbot
    network:
      name: chatbot
      driver: bridge
    volumes: [n8n_data, typebot_data]
    groups:
      traefik:
        definition: docker-compose.yml
        order: 1
      n8n:
        definition: n8n/docker-compose.n8n.yml
        order: 2
"""
import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from ..errors import StackConfigError
from ..MODELS.service_group import ServiceGroup
from ..MODELS.stack_config import StackConfig, default_stack
from ..UTILS.string_interpolation import EnvironmentInterpolator

# Top-level keys copied onto StackConfig unchanged.
_PLAIN_KEYS = (
    "project_name", "branch", "volumes", "required_ports", "poll_interval",
    "start_timeout", "env_file", "sweep_patterns", "generated_artifacts",
)


class StackParser:
    """
    Parser for stack files.
    """
    def __init__(self, context: Optional[Dict[str, str]] = None):
        """
        Initializes the parser with an optional environment context for interpolation.

        :param context: A dictionary of environment variables for interpolation.
        """
        self.context = context if context is not None else dict(os.environ)

    def parse(self, stack_path: str) -> StackConfig:
        """
        Parses a stack file from a path.

        :param stack_path: Path to the stack file.
        :return: Parsed configuration.
        :raises StackConfigError: If the file cannot be read or is invalid.
        """
        try:
            with open(stack_path, 'r') as f:
                content = f.read()
        except OSError as e:
            raise StackConfigError(f"Cannot read stack file {stack_path}: {e}") from e
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> StackConfig:
        """
        Parses a stack file from a string.

        :param content: YAML content of the stack file.
        :return: Parsed configuration.
        """
        try:
            content = EnvironmentInterpolator.interpolate(content, self.context)
        except KeyError as e:
            raise StackConfigError(f"Stack file interpolation failed: {e.args[0]}") from e

        if not content.strip():
            content = "{}"
        try:
            data = yaml.safe_load(content)
        except (yaml.YAMLError, ValueError) as e:
            raise StackConfigError(f"Stack file is not valid YAML: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise StackConfigError("Stack file must contain a mapping at the top level")

        values = self._collect(data)
        try:
            return default_stack(**values)
        except ValidationError as e:
            raise StackConfigError(f"Invalid stack file: {e}") from e

    def _collect(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = {key: data[key] for key in _PLAIN_KEYS if key in data}

        repository = data.get('repository') or {}
        if not isinstance(repository, dict):
            raise StackConfigError("'repository' must be a mapping")
        if 'url' in repository:
            values['repo_url'] = repository['url']
        if 'dir' in repository:
            values['repo_dir'] = str(repository['dir'])
        if 'branch' in repository:
            values['branch'] = repository['branch']

        network = data.get('network')
        if isinstance(network, str):
            values['network_name'] = network
        elif isinstance(network, dict):
            if 'name' in network:
                values['network_name'] = network['name']
            if 'driver' in network:
                values['network_driver'] = network['driver']

        if 'groups' in data:
            values['groups'] = self._parse_groups(data['groups'])
        return values

    def _parse_groups(self, spec: Any) -> List[ServiceGroup]:
        """
        Parses the groups section, given either as a mapping keyed by name or as a list.

        :param spec: The groups section of the stack file.
        :return: ServiceGroup instances. List position supplies a missing order.
        """
        if isinstance(spec, dict):
            if not all(body is None or isinstance(body, dict) for body in spec.values()):
                raise StackConfigError("each group must be a mapping")
            entries = [dict(body or {}, name=name) for name, body in spec.items()]
        elif isinstance(spec, list):
            if not all(isinstance(item, dict) for item in spec):
                raise StackConfigError("each group must be a mapping")
            entries = [dict(item) for item in spec]
        else:
            raise StackConfigError("'groups' must be a mapping or a list")

        groups = []
        for position, entry in enumerate(entries, start=1):
            try:
                groups.append(ServiceGroup(
                    name=str(entry.get('name', '')),
                    definition_path=entry.get('definition'),
                    start_order=int(entry.get('order', position)),
                    compose_project=entry.get('project'),
                ))
            except (ValidationError, TypeError, ValueError) as e:
                raise StackConfigError(f"Invalid group '{entry.get('name', '?')}': {e}") from e
        return groups
