"""
Volume management for the stack's named volumes.
"""
import logging
from typing import Iterable, List

from ..errors import RuntimeCommandError, VolumeCreateFailed
from ..RUNNERS.runtime import Runtime

logger = logging.getLogger(__name__)


class VolumeManager:
    """
    Creates named volumes shared by the service groups.
    """
    def __init__(self, runtime: Runtime):
        """
        Initializes the volume manager.

        :param runtime: Container runtime owning the volumes.
        """
        self.runtime = runtime

    def ensure_volumes(self, names: Iterable[str]) -> List[str]:
        """
        Creates every listed volume that does not exist yet.

        Each name goes through absence check, creation and presence check.
        A creation that fails because someone else created the volume in
        the meantime is accepted.

        :param names: Volume names.
        :return: Names of the volumes created by this call.
        :raises VolumeCreateFailed: If a volume is still missing after creation.
        """
        created = []
        for name in names:
            if self.runtime.volume_exists(name):
                logger.info("Volume '%s' already exists", name)
                continue

            logger.info("Creating volume '%s'", name)
            try:
                self.runtime.create_volume(name)
            except RuntimeCommandError as e:
                if self.runtime.volume_exists(name):
                    logger.info("Volume '%s' appeared while creating it, continuing", name)
                    continue
                raise VolumeCreateFailed(name, str(e)) from e

            if not self.runtime.volume_exists(name):
                raise VolumeCreateFailed(name, "volume not found after creation")
            created.append(name)
        return created
