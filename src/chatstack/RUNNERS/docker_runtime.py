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
Runtime implementation backed by the docker CLI and its compose plugin.

Listings are requested as JSON (``--format '{{json .}}'``) and decoded into
records; nothing here parses column-aligned text output.
"""
import json
import logging
import shutil
from typing import Any, Dict, List, Optional

from ..MODELS.service_group import DeploymentState
from .command_runner import CommandRunner
from .runtime import ContainerFilter, Runtime, StackRef

logger = logging.getLogger(__name__)

JSON_FORMAT = "{{json .}}"


def parse_json_records(output: str) -> List[Dict[str, Any]]:
    """
    Decodes docker JSON output, which is either one array or one object per line.

    :param output: Raw stdout of a docker listing command.
    :return: The decoded records; undecodable lines are dropped.
    """
    output = (output or "").strip()
    if not output:
        return []
    try:
        parsed = json.loads(output)
        if isinstance(parsed, list):
            return [r for r in parsed if isinstance(r, dict)]
        if isinstance(parsed, dict):
            return [parsed]
    except json.JSONDecodeError:
        pass

    records = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("Skipping undecodable docker output line: %r", line)
            continue
        if isinstance(record, dict):
            records.append(record)
    return records


class DockerRuntime(Runtime):
    """
    Drives the local docker engine through its command line interface.
    """
    def __init__(self, runner: Optional[CommandRunner] = None, compose_command: Optional[List[str]] = None):
        """
        Initializes the docker runtime.

        :param runner: Command runner used for every docker invocation.
        :param compose_command: Compose invocation, e.g. ['docker', 'compose'].
                                Detected on first use when not given.
        """
        self.runner = runner or CommandRunner()
        self._compose_command = compose_command

    @property
    def compose_command(self) -> List[str]:
        if self._compose_command is None:
            self._compose_command = self._detect_compose()
        return self._compose_command

    def _detect_compose(self) -> List[str]:
        plugin = self.runner.run(["docker", "compose", "version"], check=False)
        if plugin.returncode == 0:
            return ["docker", "compose"]
        if shutil.which("docker-compose"):
            return ["docker-compose"]
        # Let the first compose call report the failure with a proper message.
        return ["docker", "compose"]

    def _docker(self, *args: str, check: bool = True):
        return self.runner.run(["docker", *args], check=check)

    def _compose(self, stack: StackRef, *args: str, **run_options):
        command = [*self.compose_command, "-p", stack.project, "-f", str(stack.definition), *args]
        return self.runner.run(command, cwd=stack.cwd, **run_options)

    def _names(self, *args: str) -> List[str]:
        result = self._docker(*args, "--format", JSON_FORMAT)
        return [r.get("Name", "") for r in parse_json_records(result.stdout) if r.get("Name")]

    # Networks

    def network_exists(self, name: str) -> bool:
        return name in self._names("network", "ls", "--filter", f"name={name}")

    def create_network(self, name: str, driver: str = "bridge"):
        self._docker("network", "create", "--driver", driver, name)

    def remove_network(self, name: str):
        self._docker("network", "rm", name)

    def list_networks(self, name_pattern: Optional[str] = None) -> List[str]:
        names = self._names("network", "ls")
        if name_pattern:
            names = [n for n in names if name_pattern.lower() in n.lower()]
        return names

    # Volumes

    def volume_exists(self, name: str) -> bool:
        return name in self._names("volume", "ls", "--filter", f"name={name}")

    def create_volume(self, name: str):
        self._docker("volume", "create", name)

    def list_volumes(self, name_pattern: Optional[str] = None) -> List[str]:
        names = self._names("volume", "ls")
        if name_pattern:
            names = [n for n in names if name_pattern.lower() in n.lower()]
        return names

    def remove_volumes(self, names: List[str]):
        if names:
            self._docker("volume", "rm", "--force", *names)

    def prune_dangling_volumes(self):
        self._docker("volume", "prune", "--force")

    # Stacks

    def definition_exists(self, stack: StackRef) -> bool:
        return stack.definition.is_file()

    def stack_status(self, stack: StackRef) -> Dict[str, DeploymentState]:
        result = self._compose(stack, "ps", "--all", "--format", "json")
        status = {}
        for record in parse_json_records(result.stdout):
            service = record.get("Service") or record.get("Name") or ""
            status[service] = DeploymentState.from_container_state(
                record.get("State", ""), record.get("Health", "")
            )
        return status

    def stack_up(self, stack: StackRef):
        # Pulling images on a first start can take longer than any fixed limit.
        self._compose(stack, "up", "--detach", timeout=None)

    def stack_down(self, stack: StackRef, remove_volumes: bool = False, remove_orphans: bool = False):
        args = ["down"]
        if remove_volumes:
            args.append("--volumes")
        if remove_orphans:
            args.append("--remove-orphans")
        self._compose(stack, *args, timeout=None)

    def stack_restart(self, stack: StackRef):
        self._compose(stack, "restart", timeout=None)

    # Containers

    def list_containers(self, selector: ContainerFilter) -> List[str]:
        args = ["ps", "--all", "--no-trunc"]
        if selector.name_pattern:
            args += ["--filter", f"name={selector.name_pattern}"]
        if selector.network:
            args += ["--filter", f"network={selector.network}"]
        if selector.status:
            args += ["--filter", f"status={selector.status}"]
        if selector.compose_project:
            args += ["--filter", f"label=com.docker.compose.project={selector.compose_project}"]
        result = self._docker(*args, "--format", JSON_FORMAT)
        return [r["ID"] for r in parse_json_records(result.stdout) if r.get("ID")]

    def remove_containers(self, container_ids: List[str], force: bool = False):
        if not container_ids:
            return
        args = ["rm"]
        if force:
            args.append("--force")
        self._docker(*args, *container_ids)

    # Images

    def list_images(self, repo_pattern: str) -> List[str]:
        result = self._docker("images", "--format", JSON_FORMAT)
        refs = []
        for record in parse_json_records(result.stdout):
            repository = record.get("Repository", "")
            if repo_pattern.lower() not in repository.lower():
                continue
            tag = record.get("Tag", "")
            if repository == "<none>" or tag in ("", "<none>"):
                ref = record.get("ID", "")
            else:
                ref = f"{repository}:{tag}"
            if ref and ref not in refs:
                refs.append(ref)
        return refs

    def remove_images(self, image_refs: List[str]):
        if image_refs:
            self._docker("rmi", "--force", *image_refs)

    def prune_dangling_images(self):
        self._docker("image", "prune", "--force")

    def system_prune(self, all_images: bool = True, volumes: bool = True):
        args = ["system", "prune", "--force"]
        if all_images:
            args.append("--all")
        if volumes:
            args.append("--volumes")
        self._docker(*args)
