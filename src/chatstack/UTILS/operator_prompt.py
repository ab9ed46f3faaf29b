"""
Operator confirmation prompts.
"""
import logging
import os
import sys
from abc import ABC, abstractmethod
from typing import Optional

import click

logger = logging.getLogger(__name__)

CONTROLLING_TERMINAL = "/dev/tty"


class OperatorPrompt(ABC):
    """
    Asks the operator to confirm an action by typing a literal answer.
    """

    @abstractmethod
    def ask(self, prompt_text: str) -> Optional[str]:
        """
        Returns the operator's answer, or None when nobody can answer.
        """

    def confirm(self, prompt_text: str, required_literal: str, case_sensitive: bool = True) -> bool:
        """
        Blocks until the operator answers; True only for the exact literal.

        :param prompt_text: Question shown to the operator.
        :param required_literal: Answer that confirms the action.
        :param case_sensitive: Compare answers case-sensitively.
        :return: Whether the action was confirmed. A missing answer declines.
        """
        answer = self.ask(prompt_text)
        if answer is None:
            logger.warning("No interactive terminal available; treating '%s' as declined", prompt_text)
            return False
        answer = answer.strip()
        if case_sensitive:
            return answer == required_literal
        return answer.lower() == required_literal.lower()


class ClickPrompt(OperatorPrompt):
    """
    Reads answers from standard input, or from the controlling terminal
    when standard input is piped.
    """
    def __init__(self, terminal: str = CONTROLLING_TERMINAL):
        self.terminal = terminal

    def ask(self, prompt_text: str) -> Optional[str]:
        if sys.stdin is not None and sys.stdin.isatty():
            try:
                return click.prompt(prompt_text, default="", show_default=False)
            except click.Abort:
                return None
        return self._ask_terminal(prompt_text)

    def _ask_terminal(self, prompt_text: str) -> Optional[str]:
        try:
            # Never create the terminal path: a missing device means nobody can answer.
            with open(self.terminal, "r") as tty_in, \
                    open(os.open(self.terminal, os.O_WRONLY | os.O_APPEND), "w") as tty_out:
                tty_out.write(f"{prompt_text}: ")
                tty_out.flush()
                line = tty_in.readline()
        except OSError as e:
            logger.debug("Controlling terminal %s unavailable: %s", self.terminal, e)
            return None
        if not line:
            return None
        return line.rstrip("\n")
