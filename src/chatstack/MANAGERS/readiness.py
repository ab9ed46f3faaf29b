"""
Readiness polling for service groups after they are started.
"""
import logging
import time
from typing import Callable

from tenacity import RetryError, Retrying, retry_if_exception_type, retry_if_result, stop_after_attempt, wait_fixed

from ..errors import GroupStartTimeout, RuntimeCommandError
from ..MODELS.service_group import ServiceGroup
from ..RUNNERS.runtime import ContainerFilter, Runtime, StackRef

logger = logging.getLogger(__name__)


class ReadinessWaiter:
    """
    Waits until a running container belonging to a group shows up.
    A present container process is the only readiness signal available.
    """

    def __init__(self,
                 runtime: Runtime,
                 interval: float = 5.0,
                 timeout: float = 1800.0,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initializes the waiter.

        :param runtime: Container runtime to query.
        :param interval: Seconds between two presence checks.
        :param timeout: Ceiling in seconds before giving up on a group.
        :param sleep: Sleep function, replaceable in tests.
        """
        self.runtime = runtime
        self.interval = interval
        self.timeout = timeout
        self.sleep = sleep

    @property
    def max_attempts(self) -> int:
        return max(1, int(self.timeout // self.interval))

    def is_present(self, stack: StackRef) -> bool:
        """
        Checks whether a running container carries the stack's compose project label.
        Name matching would let 'platform-ext' containers stand in for 'platform'.
        """
        running = self.runtime.list_containers(ContainerFilter(compose_project=stack.project, status="running"))
        return bool(running)

    def wait_for_group(self, group: ServiceGroup, stack: StackRef):
        """
        Blocks until the group has a running container.

        :param group: The group just started.
        :param stack: The compose stack the group was started from.
        :raises GroupStartTimeout: If no container appeared within the timeout.
        """
        logger.info("Waiting for '%s' container to be up...", group.name)
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.interval),
            # A failing query counts as "not there yet".
            retry=retry_if_result(lambda present: not present) | retry_if_exception_type(RuntimeCommandError),
            sleep=self.sleep,
        )
        try:
            retrying(self.is_present, stack)
        except RetryError:
            # The ceiling falls one interval after the last check.
            self.sleep(self.interval)
            elapsed = self.max_attempts * self.interval
            logger.error("Timeout reached: '%s' did not start within %gs", group.name, elapsed)
            raise GroupStartTimeout(group.name, elapsed, self.max_attempts) from None
        logger.info("'%s' is now running", group.name)
