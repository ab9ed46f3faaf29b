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
Destructive, confirmation-gated removal of everything the stack created.

Every phase is best effort: a failing runtime call is logged and recorded,
and the remaining phases still run. Nothing is retried.
"""
import logging
from typing import Callable, Dict, Iterable, List, Optional

from ..errors import ResetConfirmationDeclined, RuntimeCommandError
from ..MODELS.operation_report import ResetReport
from ..RUNNERS.runtime import ContainerFilter
from ..UTILS.operator_prompt import ClickPrompt

logger = logging.getLogger(__name__)

FIRST_CONFIRMATION = "YES"
SECOND_CONFIRMATION = "CONFIRM"
DELETE_CHECKOUT_CONFIRMATION = "y"


def _unique(items: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for item in items:
        if item and item not in seen:
            seen.append(item)
    return seen


class ResetManager:
    """
    Runs the reset phases for one orchestrator.
    """

    def __init__(self, orchestrator, repository=None):
        """
        Initializes the reset manager.

        :param orchestrator: ServiceOrchestrator whose config, runtime and prompt are used.
        :param repository: Optional RepositoryManager for the checkout cleanup phase.
        """
        self.orchestrator = orchestrator
        self.config = orchestrator.config
        self.runtime = orchestrator.runtime
        self.prompt = orchestrator.prompt or ClickPrompt()
        self.repository = repository

    def confirm(self) -> bool:
        """
        Asks the two confirmations. Both literals must match exactly.
        """
        logger.warning("Reset removes every container, volume, network and image of '%s'",
                       self.config.project_name)
        if not self.prompt.confirm(
                f"This permanently deletes all {self.config.project_name} data. Type '{FIRST_CONFIRMATION}' to continue",
                FIRST_CONFIRMATION):
            return False
        return self.prompt.confirm(
            f"Are you absolutely sure? Type '{SECOND_CONFIRMATION}' to reset everything",
            SECOND_CONFIRMATION)

    def run(self) -> ResetReport:
        """
        Confirms, then runs all phases in order.

        :return: Report of failures per phase and of remaining resources.
        :raises ResetConfirmationDeclined: If the operator did not confirm both times.
        """
        if not self.confirm():
            logger.info("Reset cancelled")
            raise ResetConfirmationDeclined("Reset cancelled by operator")

        report = ResetReport(operation="reset")
        phases: List[Callable[[ResetReport], None]] = [
            self.remove_group_containers,
            self.sweep_containers,
            self.remove_volumes,
            self.remove_network,
            self.remove_images,
            self.clean_repository,
            self.prune_system,
            self.verify,
        ]
        for phase in phases:
            phase(report)
        if report.clean:
            logger.info("Reset complete, nothing left behind")
        else:
            logger.warning("Reset complete, some resources remain: %s", report.remaining)
        return report

    def _attempt(self, report: ResetReport, target: str, action: Callable, *args, **kwargs):
        try:
            result = action(*args, **kwargs)
        except (RuntimeCommandError, OSError) as e:
            logger.error("Reset step for '%s' failed: %s", target, e)
            report.record_failure(target, str(e))
            return None
        report.record_success(target)
        return result

    def _query(self, report: ResetReport, target: str, action: Callable, *args) -> List[str]:
        try:
            return list(action(*args))
        except RuntimeCommandError as e:
            logger.error("Listing %s failed: %s", target, e)
            report.record_failure(target, str(e))
            return []

    # Phase 1
    def remove_group_containers(self, report: ResetReport):
        """
        Stops and removes each group's containers, newest group first, then
        force-removes whatever is still labelled with the group's compose project.
        """
        for group in self.config.teardown_groups():
            ref = self.orchestrator.stack_ref(group)
            if ref is not None and self.runtime.definition_exists(ref):
                logger.info("Stopping and removing %s...", group.name)
                self._attempt(report, group.name, self.runtime.stack_down, ref,
                              remove_volumes=True, remove_orphans=True)
            else:
                logger.warning("Compose file not found for '%s', removing containers directly", group.name)

            project = self.config.compose_project_for(group)
            leftovers = self._query(report, f"{group.name} containers",
                                    self.runtime.list_containers, ContainerFilter(compose_project=project))
            if leftovers:
                self._attempt(report, f"{group.name} containers", self.runtime.remove_containers,
                              leftovers, force=True)

    # Phase 2
    def sweep_containers(self, report: ResetReport):
        """
        Force-removes containers attached to the stack network or named like a group.
        """
        found = self._query(report, "network containers", self.runtime.list_containers,
                            ContainerFilter(network=self.config.network_name))
        for pattern in self.config.sweep_names():
            found += self._query(report, f"{pattern} containers", self.runtime.list_containers,
                                 ContainerFilter(name_pattern=pattern))
        found = _unique(found)
        if found:
            logger.info("Force-removing %d leftover containers", len(found))
            self._attempt(report, "leftover containers", self.runtime.remove_containers, found, force=True)

    # Phase 3
    def remove_volumes(self, report: ResetReport):
        """
        Removes the project volume, the configured volumes, volumes named like a
        group, then dangling volumes.
        """
        project = self.config.project_name
        names = [v for v in self._query(report, "volumes", self.runtime.list_volumes, project) if v == project]
        names += [v for v in self._query(report, "volumes", self.runtime.list_volumes, None)
                  if v in self.config.volumes]
        for pattern in self.config.sweep_names():
            names += self._query(report, f"{pattern} volumes", self.runtime.list_volumes, pattern)
        names = _unique(names)
        if names:
            logger.info("Removing volumes: %s", ", ".join(names))
            self._attempt(report, "volumes", self.runtime.remove_volumes, names)
        self._attempt(report, "dangling volumes", self.runtime.prune_dangling_volumes)

    # Phase 4
    def remove_network(self, report: ResetReport):
        name = self.config.network_name
        try:
            exists = self.runtime.network_exists(name)
        except RuntimeCommandError as e:
            report.record_failure(f"network {name}", str(e))
            return
        if exists:
            logger.info("Removing network '%s'", name)
            self._attempt(report, f"network {name}", self.runtime.remove_network, name)

    # Phase 5
    def remove_images(self, report: ResetReport):
        refs: List[str] = []
        for pattern in self.config.sweep_names():
            refs += self._query(report, f"{pattern} images", self.runtime.list_images, pattern)
        refs = _unique(refs)
        if refs:
            logger.info("Removing images: %s", ", ".join(refs))
            self._attempt(report, "images", self.runtime.remove_images, refs)
        self._attempt(report, "dangling images", self.runtime.prune_dangling_images)

    # Phase 6
    def clean_repository(self, report: ResetReport):
        """
        Deletes the checkout if the operator agrees; otherwise removes generated
        files from it and reverts it to a clean checkout.
        """
        if self.repository is None or not self.repository.exists():
            return
        path = self.repository.path
        if self.prompt.confirm(f"Delete the entire repository at {path}? (y/N)", DELETE_CHECKOUT_CONFIRMATION,
                               case_sensitive=False):
            if self._attempt(report, "repository", self.repository.remove_checkout) is not None:
                report.repository_removed = True
            return
        self._attempt(report, "generated files", self.repository.clean_generated, self.config.generated_artifacts)
        self._attempt(report, "repository revert", self.repository.revert)

    # Phase 7
    def prune_system(self, report: ResetReport):
        # Host-wide on purpose: unrelated stopped containers and unused images go too.
        logger.warning("Pruning all unused Docker resources on this host")
        self._attempt(report, "system prune", self.runtime.system_prune, all_images=True, volumes=True)

    # Phase 8
    def verify(self, report: ResetReport):
        remaining: Dict[str, List[str]] = {"containers": [], "volumes": [], "networks": []}
        for pattern in self.config.sweep_names():
            remaining["containers"] += self._query(report, "verification", self.runtime.list_containers,
                                                   ContainerFilter(name_pattern=pattern))
            remaining["volumes"] += self._query(report, "verification", self.runtime.list_volumes, pattern)
        remaining["networks"] = [n for n in self._query(report, "verification", self.runtime.list_networks,
                                                         self.config.network_name)
                                 if n == self.config.network_name]
        report.remaining = {kind: _unique(items) for kind, items in remaining.items()}
        for kind, items in report.remaining.items():
            if items:
                logger.warning("Remaining %s: %s", kind, ", ".join(items))
