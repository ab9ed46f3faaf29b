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
Shared fixtures: an in-memory runtime that records every call, and a
prompt answering from a script.
"""
import itertools

import pytest

from chatstack.errors import RuntimeCommandError
from chatstack.MODELS.service_group import DeploymentState, ServiceGroup
from chatstack.MODELS.stack_config import StackConfig
from chatstack.RUNNERS.runtime import Runtime
from chatstack.UTILS.operator_prompt import OperatorPrompt

MUTATING_CALLS = {
    "create_network", "remove_network", "create_volume", "remove_volumes",
    "prune_dangling_volumes", "stack_up", "stack_down", "stack_restart",
    "remove_containers", "remove_images", "prune_dangling_images", "system_prune",
}


class FakeRuntime(Runtime):
    """
    Runtime keeping networks, volumes, containers and images in memory.
    """

    def __init__(self, config: StackConfig):
        self.config = config
        self.calls = []
        self.networks = set()
        self.volumes = set()
        self.images = []
        # id -> {"name", "network", "status", "project"}
        self.containers = {}
        self.missing = set()
        self.never_present = set()
        self.fail = {}
        self.states = {}
        self._ids = itertools.count(1)

    # helpers

    def group_for(self, ref):
        for group in self.config.groups:
            if self.config.definition_for(group) == ref.definition:
                return group.name
        raise AssertionError(f"unknown stack {ref.definition}")

    def _check(self, method, target):
        if target in self.fail.get(method, set()):
            raise RuntimeCommandError(["docker", method, target], 1, f"{method} failed for {target}")

    def add_container(self, name, network=None, status="running", project=None):
        container_id = f"c{next(self._ids)}"
        self.containers[container_id] = {"name": name, "network": network, "status": status, "project": project}
        return container_id

    def mutations(self):
        return [call for call in self.calls if call[0] in MUTATING_CALLS]

    def calls_named(self, method):
        return [call[1] for call in self.calls if call[0] == method]

    # networks

    def network_exists(self, name):
        self.calls.append(("network_exists", name))
        return name in self.networks

    def create_network(self, name, driver="bridge"):
        self.calls.append(("create_network", name))
        self._check("create_network", name)
        self.networks.add(name)

    def remove_network(self, name):
        self.calls.append(("remove_network", name))
        self._check("remove_network", name)
        self.networks.discard(name)

    def list_networks(self, name_pattern=None):
        self.calls.append(("list_networks", name_pattern))
        return sorted(n for n in self.networks if not name_pattern or name_pattern in n)

    # volumes

    def volume_exists(self, name):
        self.calls.append(("volume_exists", name))
        return name in self.volumes

    def create_volume(self, name):
        self.calls.append(("create_volume", name))
        self._check("create_volume", name)
        self.volumes.add(name)

    def list_volumes(self, name_pattern=None):
        self.calls.append(("list_volumes", name_pattern))
        return sorted(v for v in self.volumes if not name_pattern or name_pattern in v)

    def remove_volumes(self, names):
        self.calls.append(("remove_volumes", tuple(names)))
        for name in names:
            self.volumes.discard(name)

    def prune_dangling_volumes(self):
        self.calls.append(("prune_dangling_volumes", None))

    # stacks

    def definition_exists(self, stack):
        return self.group_for(stack) not in self.missing

    def stack_status(self, stack):
        name = self.group_for(stack)
        self.calls.append(("stack_status", name))
        self._check("stack_status", name)
        if name in self.states:
            return {name: self.states[name]}
        return {
            c["name"]: DeploymentState.from_container_state(c["status"])
            for c in self.containers.values() if c["project"] == stack.project
        }

    def stack_up(self, stack):
        name = self.group_for(stack)
        self.calls.append(("stack_up", name))
        self._check("stack_up", name)
        if name not in self.never_present:
            self.add_container(f"{name}-1", network=self.config.network_name, project=stack.project)

    def stack_down(self, stack, remove_volumes=False, remove_orphans=False):
        name = self.group_for(stack)
        self.calls.append(("stack_down", name))
        self._check("stack_down", name)
        for container_id in [i for i, c in self.containers.items() if c["project"] == stack.project]:
            del self.containers[container_id]

    def stack_restart(self, stack):
        name = self.group_for(stack)
        self.calls.append(("stack_restart", name))
        self._check("stack_restart", name)

    # containers

    def list_containers(self, selector):
        self.calls.append(("list_containers", selector))
        found = []
        for container_id, c in self.containers.items():
            if selector.name_pattern and selector.name_pattern not in c["name"]:
                continue
            if selector.network and selector.network != c["network"]:
                continue
            if selector.status and selector.status != c["status"]:
                continue
            if selector.compose_project and selector.compose_project != c["project"]:
                continue
            found.append(container_id)
        return found

    def remove_containers(self, container_ids, force=False):
        self.calls.append(("remove_containers", tuple(container_ids)))
        for container_id in container_ids:
            self.containers.pop(container_id, None)

    # images

    def list_images(self, repo_pattern):
        self.calls.append(("list_images", repo_pattern))
        return [i for i in self.images if repo_pattern in i]

    def remove_images(self, image_refs):
        self.calls.append(("remove_images", tuple(image_refs)))
        self.images = [i for i in self.images if i not in image_refs]

    def prune_dangling_images(self):
        self.calls.append(("prune_dangling_images", None))

    def system_prune(self, all_images=True, volumes=True):
        self.calls.append(("system_prune", (all_images, volumes)))
        self._check("system_prune", "host")


class ScriptedPrompt(OperatorPrompt):
    """
    Answers prompts from a fixed list; runs out as if nobody were there.
    """

    def __init__(self, answers=()):
        self.answers = list(answers)
        self.questions = []

    def ask(self, prompt_text):
        self.questions.append(prompt_text)
        if not self.answers:
            return None
        return self.answers.pop(0)


GROUP_NAMES = ["proxy", "cache", "platform", "platform-ext", "automation", "bot-builder"]


def six_group_config(repo_dir, **overrides) -> StackConfig:
    groups = [
        ServiceGroup(name=name, definition_path=f"{name}/docker-compose.yml", start_order=order)
        for order, name in enumerate(GROUP_NAMES, start=1)
    ]
    values = {
        "repo_dir": str(repo_dir),
        "groups": groups,
        "volumes": ["proxy_certs", "platform_data"],
        "sweep_patterns": [],
    }
    values.update(overrides)
    return StackConfig(**values)


@pytest.fixture
def config(tmp_path):
    return six_group_config(tmp_path / "chatbot")


@pytest.fixture
def runtime(config):
    return FakeRuntime(config)


@pytest.fixture
def make_prompt():
    return ScriptedPrompt


@pytest.fixture
def sleeps():
    """List collecting every sleep duration requested by the code under test."""
    return []


@pytest.fixture
def make_runtime():
    return FakeRuntime
