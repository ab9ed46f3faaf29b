"""
Management of the local checkout holding the stack definitions.
"""
import logging
import shutil
from pathlib import Path
from typing import Iterable, List, Optional

from ..errors import RepositoryFetchFailed, RuntimeCommandError
from ..MODELS.stack_config import StackConfig
from ..RUNNERS.command_runner import CommandRunner

logger = logging.getLogger(__name__)


class RepositoryManager:
    """
    Clones, updates and cleans the stack repository with git.
    """
    def __init__(self, config: StackConfig, runner: Optional[CommandRunner] = None):
        """
        Initializes the repository manager.

        :param config: Stack configuration naming the repository and checkout directory.
        :param runner: Command runner used for git.
        """
        self.config = config
        self.runner = runner or CommandRunner()

    @property
    def path(self) -> Path:
        return self.config.repo_path

    def exists(self) -> bool:
        return self.path.is_dir()

    def fetch(self) -> bool:
        """
        Clones the repository, or pulls the configured branch if already cloned.

        :return: True if a fresh clone was made.
        :raises RepositoryFetchFailed: If git fails or the checkout is missing afterwards.
        """
        if self.exists():
            logger.info("Repository already cloned at %s, pulling latest changes", self.path)
            try:
                self.runner.run(["git", "pull", "origin", self.config.branch], cwd=self.path, timeout=None)
            except RuntimeCommandError as e:
                raise RepositoryFetchFailed(f"Updating {self.path} failed: {e}") from e
            return False

        logger.info("Cloning %s into %s", self.config.repo_url, self.path)
        try:
            self.runner.run(["git", "clone", "--branch", self.config.branch,
                             self.config.repo_url, str(self.path)], timeout=None)
        except RuntimeCommandError as e:
            raise RepositoryFetchFailed(f"Cloning {self.config.repo_url} failed: {e}") from e
        if not self.exists():
            raise RepositoryFetchFailed(f"Repository cloning failed: {self.path} does not exist")
        return True

    def remove_checkout(self) -> bool:
        """
        Deletes the whole checkout directory.
        """
        logger.warning("Deleting repository checkout %s", self.path)
        shutil.rmtree(self.path)
        return True

    def clean_generated(self, patterns: Iterable[str]) -> List[str]:
        """
        Removes generated files (environment files, logs, caches) from the checkout.

        :param patterns: Glob patterns relative to the checkout root.
        :return: Paths removed, relative to the checkout.
        """
        removed = []
        for pattern in patterns:
            for match in sorted(self.path.glob(pattern)):
                if ".git" in match.relative_to(self.path).parts:
                    continue
                if match.is_dir() and not match.is_symlink():
                    shutil.rmtree(match)
                elif match.exists() or match.is_symlink():
                    match.unlink()
                else:
                    continue
                removed.append(str(match.relative_to(self.path)))
        if removed:
            logger.info("Removed generated files: %s", ", ".join(removed))
        return removed

    def revert(self):
        """
        Discards local modifications and untracked files.
        """
        self.runner.run(["git", "checkout", "--", "."], cwd=self.path)
        self.runner.run(["git", "clean", "-fd"], cwd=self.path)
