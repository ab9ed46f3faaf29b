"""
Network management for the stack's shared network.
"""
import logging

from ..errors import NetworkCreateFailed, RuntimeCommandError
from ..RUNNERS.runtime import Runtime

logger = logging.getLogger(__name__)


class NetworkManager:
    """
    Creates the shared network the service groups attach to.
    """
    def __init__(self, runtime: Runtime):
        """
        Initializes the network manager.

        :param runtime: Container runtime owning the network.
        """
        self.runtime = runtime

    def ensure_network(self, name: str, driver: str = "bridge") -> bool:
        """
        Creates the network unless it already exists. Safe to call on every run.

        :param name: Network name.
        :param driver: Network driver used on creation.
        :return: True if the network was created by this call.
        :raises NetworkCreateFailed: If creation fails or the network is missing afterwards.
        """
        if self.runtime.network_exists(name):
            logger.info("Docker network '%s' already exists", name)
            return False

        logger.info("Creating Docker network '%s' (driver %s)", name, driver)
        try:
            self.runtime.create_network(name, driver)
        except RuntimeCommandError as e:
            if self.runtime.network_exists(name):
                logger.info("Docker network '%s' appeared while creating it, continuing", name)
                return False
            raise NetworkCreateFailed(name, str(e)) from e

        if not self.runtime.network_exists(name):
            raise NetworkCreateFailed(name, "network not found after creation")
        logger.info("Docker network '%s' created", name)
        return True
