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
Orchestration of the stack's service groups in their fixed order.

Bring-up is fail-fast and strictly sequential: a group is started only
after the previous one has a running container. Teardown, restart and
reset are fail-soft: they record failures and keep going.
"""
import logging
import time
from typing import Callable, Dict, Iterable, List, Optional

from ..errors import GroupStartFailed, GroupStopFailed, RuntimeCommandError, StackDefinitionMissing
from ..MODELS.operation_report import OperationReport, ResetReport
from ..MODELS.service_group import DeploymentState, ServiceGroup
from ..MODELS.stack_config import StackConfig
from ..RUNNERS.runtime import Runtime, StackRef
from ..UTILS.operator_prompt import OperatorPrompt
from .network_manager import NetworkManager
from .readiness import ReadinessWaiter
from .reset_manager import ResetManager
from .volume_manager import VolumeManager

logger = logging.getLogger(__name__)


class ServiceOrchestrator:
    """
    Brings the configured service groups to a desired running or stopped state.
    Runtime state is re-queried on every decision and never cached.
    """
    def __init__(self,
                 config: StackConfig,
                 runtime: Runtime,
                 prompt: Optional[OperatorPrompt] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initializes the orchestrator.

        :param config: Immutable stack configuration.
        :param runtime: Container runtime performing every action.
        :param prompt: Operator prompt used by reset.
        :param sleep: Sleep function used between readiness checks.
        """
        self.config = config
        self.runtime = runtime
        self.prompt = prompt
        self.network_manager = NetworkManager(runtime)
        self.volume_manager = VolumeManager(runtime)
        self.readiness = ReadinessWaiter(runtime, config.poll_interval, config.start_timeout, sleep)

    # Shared resources

    def ensure_network(self, name: Optional[str] = None) -> bool:
        """
        Creates the shared network if needed.

        :param name: Network name; the configured one by default.
        :return: True if the network was created.
        """
        return self.network_manager.ensure_network(name or self.config.network_name, self.config.network_driver)

    def ensure_volumes(self, names: Optional[Iterable[str]] = None) -> List[str]:
        """
        Creates the named volumes that are missing.

        :param names: Volume names; the configured ones by default.
        :return: Names of the volumes created.
        """
        return self.volume_manager.ensure_volumes(self.config.volumes if names is None else names)

    # Helpers

    def _ascending(self, groups: Optional[Iterable[ServiceGroup]]) -> List[ServiceGroup]:
        if groups is None:
            return self.config.ordered_groups()
        return sorted(groups, key=lambda g: g.start_order)

    def _descending(self, groups: Optional[Iterable[ServiceGroup]]) -> List[ServiceGroup]:
        return list(reversed(self._ascending(groups)))

    def stack_ref(self, group: ServiceGroup) -> Optional[StackRef]:
        """
        Builds the runtime reference for a group, or None if it declares no definition.
        """
        definition = self.config.definition_for(group)
        if definition is None:
            return None
        return StackRef(
            definition=definition,
            cwd=self.config.repo_path,
            project=self.config.compose_project_for(group),
        )

    def _existing_ref(self, group: ServiceGroup) -> Optional[StackRef]:
        ref = self.stack_ref(group)
        if ref is None or not self.runtime.definition_exists(ref):
            return None
        return ref

    def _require_ref(self, group: ServiceGroup) -> StackRef:
        ref = self._existing_ref(group)
        if ref is None:
            definition = self.config.definition_for(group)
            logger.error("Compose file not found for '%s': %s", group.name, definition)
            raise StackDefinitionMissing(group.name, str(definition) if definition else None)
        return ref

    def _start(self, group: ServiceGroup, ref: StackRef):
        logger.info("Starting %s...", group.name)
        try:
            self.runtime.stack_up(ref)
        except RuntimeCommandError as e:
            logger.error("Failed to start %s: %s", group.name, e)
            raise GroupStartFailed(group.name, str(e)) from e
        self.readiness.wait_for_group(group, ref)

    # State

    def group_state(self, group: ServiceGroup) -> DeploymentState:
        """
        Queries the current state of a group from the runtime.

        :param group: The service group.
        :return: ABSENT without a definition, UNKNOWN when the query fails.
        """
        ref = self._existing_ref(group)
        if ref is None:
            return DeploymentState.ABSENT
        try:
            statuses = self.runtime.stack_status(ref)
        except RuntimeCommandError as e:
            logger.warning("Could not query state of '%s': %s", group.name, e)
            return DeploymentState.UNKNOWN
        return DeploymentState.aggregate(statuses.values())

    def status(self) -> Dict[str, DeploymentState]:
        """
        Returns the state of every group in bring-up order.
        """
        return {group.name: self.group_state(group) for group in self.config.ordered_groups()}

    # Operations

    def bring_up(self, groups: Optional[Iterable[ServiceGroup]] = None) -> OperationReport:
        """
        Starts every group in ascending start order, waiting for each to be present.

        Nothing is rolled back on failure; groups already started keep running.

        :param groups: Groups to start; all configured groups by default.
        :return: Report listing the started groups.
        :raises StackDefinitionMissing: If a group has no definition file.
        :raises GroupStartFailed: If the runtime fails to start a group.
        :raises GroupStartTimeout: If a group never shows a running container.
        """
        report = OperationReport(operation="bring-up")
        ordered = self._ascending(groups)
        logger.info("Starting services in order: %s", ", ".join(g.name for g in ordered))
        for group in ordered:
            ref = self._require_ref(group)
            self._start(group, ref)
            report.record_success(group.name)
        logger.info("All services started successfully")
        return report

    def reconcile_up(self, groups: Optional[Iterable[ServiceGroup]] = None) -> OperationReport:
        """
        Idempotent bring-up: running groups are left alone, restarting groups are
        reported and left to the operator, every other group is cycled down and up.

        :param groups: Groups to reconcile; all configured groups by default.
        :return: Report of started, skipped and stop-failed groups.
        :raises StackDefinitionMissing: If a group has no definition file.
        :raises GroupStartFailed: If the runtime fails to start a group.
        :raises GroupStartTimeout: If a group never shows a running container.
        """
        report = OperationReport(operation="up")
        for group in self._ascending(groups):
            ref = self._require_ref(group)
            state = self.group_state(group)

            if state == DeploymentState.RUNNING:
                logger.info("%s is already running", group.name)
                report.record_skip(group.name)
                continue
            if state == DeploymentState.RESTARTING:
                logger.warning("%s is restarting; leaving it to the operator", group.name)
                report.record_skip(group.name)
                continue

            logger.info("%s is %s; restarting it cleanly", group.name, state.value)
            try:
                self.runtime.stack_down(ref)
            except RuntimeCommandError as e:
                failure = GroupStopFailed(group.name, str(e))
                logger.warning("%s", failure)
                report.record_failure(group.name, failure.reason)
            self._start(group, ref)
            report.record_success(group.name)
        return report

    def tear_down(self, groups: Optional[Iterable[ServiceGroup]] = None) -> OperationReport:
        """
        Stops every group in descending start order, continuing past failures.

        :param groups: Groups to stop; all configured groups by default.
        :return: Report of stopped, skipped and failed groups.
        """
        report = OperationReport(operation="tear-down")
        for group in self._descending(groups):
            ref = self._existing_ref(group)
            if ref is None:
                logger.warning("Compose file not found for '%s', skipping", group.name)
                report.record_skip(group.name)
                continue

            logger.info("Stopping %s...", group.name)
            try:
                self.runtime.stack_down(ref)
            except RuntimeCommandError as e:
                failure = GroupStopFailed(group.name, str(e))
                logger.error("%s", failure)
                report.record_failure(group.name, failure.reason)
                continue
            report.record_success(group.name)
        return report

    def restart_in_place(self, groups: Optional[Iterable[ServiceGroup]] = None) -> OperationReport:
        """
        Restarts every group's containers in ascending order, continuing past failures.

        :param groups: Groups to restart; all configured groups by default.
        :return: Report of restarted, skipped and failed groups.
        """
        report = OperationReport(operation="restart")
        for group in self._ascending(groups):
            ref = self._existing_ref(group)
            if ref is None:
                logger.warning("Compose file not found for '%s', skipping", group.name)
                report.record_skip(group.name)
                continue

            logger.info("Restarting %s...", group.name)
            try:
                self.runtime.stack_restart(ref)
            except RuntimeCommandError as e:
                logger.error("Failed to restart '%s': %s", group.name, e)
                report.record_failure(group.name, str(e))
                continue
            report.record_success(group.name)
        return report

    def reset(self, repository=None) -> ResetReport:
        """
        Destructively removes everything the stack created, after two confirmations.

        :param repository: Optional RepositoryManager for the checkout cleanup phase.
        :return: Report of every phase and of what remains afterwards.
        :raises ResetConfirmationDeclined: If either confirmation does not match.
        """
        return ResetManager(self, repository=repository).run()
