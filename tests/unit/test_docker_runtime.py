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
Unit tests for the docker CLI runtime.
"""
import json
import subprocess
from pathlib import Path

import pytest

from chatstack.errors import RuntimeCommandError
from chatstack.MODELS.service_group import DeploymentState
from chatstack.RUNNERS.docker_runtime import DockerRuntime, parse_json_records
from chatstack.RUNNERS.runtime import ContainerFilter, StackRef


class RecordingRunner:
    """Command runner returning canned output per command prefix."""

    def __init__(self, outputs=None, failing=()):
        self.outputs = outputs or {}
        self.failing = failing
        self.commands = []
        self.timeouts = []

    def run(self, command, cwd=None, timeout="runner default", check=True):
        command = [str(c) for c in command]
        self.commands.append((command, cwd))
        self.timeouts.append(timeout)
        joined = " ".join(command)
        returncode = 1 if any(joined.startswith(f) for f in self.failing) else 0
        stdout = ""
        for prefix, output in self.outputs.items():
            if joined.startswith(prefix):
                stdout = output
        if check and returncode:
            raise RuntimeCommandError(command, returncode, "boom")
        return subprocess.CompletedProcess(command, returncode, stdout, "")


def lines(*records):
    return "\n".join(json.dumps(r) for r in records)


@pytest.fixture
def stack(tmp_path):
    return StackRef(definition=tmp_path / "n8n" / "docker-compose.n8n.yml", cwd=tmp_path, project="n8n")


class TestParseJsonRecords:

    def test_array_and_lines(self):
        assert parse_json_records('[{"a": 1}, {"a": 2}]') == [{"a": 1}, {"a": 2}]
        assert parse_json_records('{"a": 1}\n\n{"a": 2}\nnot json') == [{"a": 1}, {"a": 2}]
        assert parse_json_records("") == []


class TestDockerRuntime:

    def test_network_exists_matches_exact_name(self):
        runner = RecordingRunner({"docker network ls": lines({"Name": "chatbot-old"}, {"Name": "chatbot"})})
        runtime = DockerRuntime(runner, compose_command=["docker", "compose"])
        assert runtime.network_exists("chatbot")
        assert not runtime.network_exists("chat")

    def test_create_network(self):
        runner = RecordingRunner()
        DockerRuntime(runner).create_network("chatbot", "bridge")
        assert runner.commands[0][0] == ["docker", "network", "create", "--driver", "bridge", "chatbot"]

    def test_stack_commands_carry_project_and_cwd(self, stack):
        runner = RecordingRunner()
        runtime = DockerRuntime(runner, compose_command=["docker", "compose"])
        runtime.stack_up(stack)
        runtime.stack_down(stack, remove_volumes=True, remove_orphans=True)
        runtime.stack_restart(stack)
        up, down, restart = runner.commands
        base = ["docker", "compose", "-p", "n8n", "-f", str(stack.definition)]
        assert up == (base + ["up", "--detach"], stack.cwd)
        assert down[0] == base + ["down", "--volumes", "--remove-orphans"]
        assert restart[0] == base + ["restart"]

    def test_stack_changes_are_not_time_limited(self, stack):
        runner = RecordingRunner()
        runtime = DockerRuntime(runner, compose_command=["docker", "compose"])
        runtime.stack_up(stack)
        runtime.stack_down(stack)
        runtime.stack_restart(stack)
        runtime.stack_status(stack)
        assert runner.timeouts == [None, None, None, "runner default"]

    def test_stack_failure_raises(self, stack):
        runner = RecordingRunner(failing=["docker compose"])
        with pytest.raises(RuntimeCommandError):
            DockerRuntime(runner, compose_command=["docker", "compose"]).stack_up(stack)

    def test_stack_status(self, stack):
        output = json.dumps([
            {"Service": "n8n", "State": "running", "Health": ""},
            {"Service": "worker", "State": "restarting"},
            {"Service": "db", "State": "running", "Health": "starting"},
        ])
        runner = RecordingRunner({"docker compose": output})
        status = DockerRuntime(runner, compose_command=["docker", "compose"]).stack_status(stack)
        assert status == {
            "n8n": DeploymentState.RUNNING,
            "worker": DeploymentState.RESTARTING,
            "db": DeploymentState.STARTING,
        }

    def test_list_containers_filters(self):
        runner = RecordingRunner({"docker ps": lines({"ID": "abc"}, {"ID": "def"})})
        ids = DockerRuntime(runner).list_containers(
            ContainerFilter(name_pattern="n8n", network="chatbot", status="running", compose_project="n8n"))
        assert ids == ["abc", "def"]
        command = runner.commands[0][0]
        assert "name=n8n" in command
        assert "network=chatbot" in command
        assert "status=running" in command
        assert "label=com.docker.compose.project=n8n" in command

    def test_remove_nothing_runs_nothing(self):
        runner = RecordingRunner()
        runtime = DockerRuntime(runner)
        runtime.remove_containers([], force=True)
        runtime.remove_volumes([])
        runtime.remove_images([])
        assert runner.commands == []

    def test_list_images_by_repository(self):
        output = lines(
            {"Repository": "n8nio/n8n", "Tag": "latest", "ID": "1"},
            {"Repository": "<none>", "Tag": "<none>", "ID": "2"},
            {"Repository": "baptistearno/typebot-builder", "Tag": "2", "ID": "3"},
        )
        runtime = DockerRuntime(RecordingRunner({"docker images": output}))
        assert runtime.list_images("n8n") == ["n8nio/n8n:latest"]
        assert runtime.list_images("typebot") == ["baptistearno/typebot-builder:2"]

    def test_system_prune_flags(self):
        runner = RecordingRunner()
        DockerRuntime(runner).system_prune(all_images=True, volumes=True)
        assert runner.commands[0][0] == ["docker", "system", "prune", "--force", "--all", "--volumes"]

    def test_compose_detection_prefers_plugin(self):
        runner = RecordingRunner()
        assert DockerRuntime(runner).compose_command == ["docker", "compose"]

    def test_definition_exists(self, stack):
        runtime = DockerRuntime(RecordingRunner())
        assert not runtime.definition_exists(stack)
        stack.definition.parent.mkdir(parents=True)
        stack.definition.write_text("services: {}\n")
        assert runtime.definition_exists(stack)
