"""
Management of the stack's .env file.
"""
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

import click
from dotenv import dotenv_values
from jinja2 import Template

from ..MODELS.stack_config import StackConfig
from ..UTILS.operator_prompt import OperatorPrompt

logger = logging.getLogger(__name__)

ENV_TEMPLATE = """\
# {{ project_name }} environment
#
# Values here are read by the compose stacks below. Save and exit when done.
{% for group in groups %}
# --- {{ group.name }}{% if group.definition_path %} ({{ group.definition_path }}){% endif %}
{% endfor %}
"""


def open_in_editor(path: Path):
    click.edit(filename=str(path))


class EnvironmentManager:
    """
    Creates, edits and checks the environment file the stacks read.
    """
    def __init__(self,
                 config: StackConfig,
                 prompt: OperatorPrompt,
                 editor: Callable[[Path], None] = open_in_editor):
        """
        Initializes the environment manager.

        :param config: Stack configuration locating the env file.
        :param prompt: Operator prompt for the edit question.
        :param editor: Opens a file for the operator to edit.
        """
        self.config = config
        self.prompt = prompt
        self.editor = editor
        self.template = Template(ENV_TEMPLATE)

    @property
    def path(self) -> Path:
        return self.config.env_path

    def render_skeleton(self) -> str:
        return self.template.render(project_name=self.config.project_name, groups=self.config.ordered_groups())

    def ensure_env_file(self) -> List[str]:
        """
        Creates the env file from a skeleton and opens it for editing, or offers
        to edit the existing one.

        :return: Warnings about the saved file.
        """
        if self.path.exists():
            logger.info(".env file already exists")
            if self.prompt.confirm("Do you want to edit the existing .env file? (y/N)", "y", case_sensitive=False):
                self.editor(self.path)
                logger.info(".env file updated successfully")
        else:
            logger.info("Creating .env file at %s", self.path)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(self.render_skeleton())
            self.editor(self.path)
            logger.info(".env file saved successfully")
        return self.validate()

    def update(self) -> List[str]:
        """
        Opens the env file for editing, creating it first when missing.

        :return: Warnings about the saved file.
        """
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(self.render_skeleton())
        self.editor(self.path)
        return self.validate()

    def variables(self) -> Dict[str, Optional[str]]:
        if not self.path.exists():
            return {}
        return dict(dotenv_values(self.path))

    def validate(self) -> List[str]:
        """
        Checks the saved env file and returns warnings; an empty file is allowed
        but reported.
        """
        warnings = []
        if not self.path.exists():
            warnings.append(f"{self.path} does not exist")
        elif self.path.stat().st_size == 0:
            warnings.append(".env file is empty")
        else:
            values = self.variables()
            if not values:
                warnings.append(".env file defines no variables")
            unset = sorted(k for k, v in values.items() if v is None)
            if unset:
                warnings.append(f".env entries without a value: {', '.join(unset)}")
        for warning in warnings:
            logger.warning("%s", warning)
        return warnings
