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
Execution of runtime commands with captured output and logging.
"""
import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..errors import RuntimeCommandError

logger = logging.getLogger(__name__)

# Marks an omitted timeout; an explicit None waits without limit.
_RUNNER_DEFAULT = object()


class CommandRunner:
    """
    Runs external commands to completion and captures their output.
    """
    def __init__(self, timeout: int = 600):
        """
        Initializes the command runner.

        Args:
            timeout (int): Default number of seconds a command may run.
        """
        self.timeout = timeout

    def run(self,
            command: Sequence[str],
            cwd: Optional[Union[str, Path]] = None,
            timeout: Optional[int] = _RUNNER_DEFAULT,
            check: bool = True) -> subprocess.CompletedProcess:
        """
        Runs a command and waits for it to finish.

        Args:
            command (Sequence[str]): Command and arguments to execute.
            cwd (Optional[Union[str, Path]]): Directory to run the command in.
            timeout (Optional[int]): Seconds before the command is abandoned. Defaults to
                the runner timeout; None waits for the command however long it takes.
            check (bool): Raise RuntimeCommandError on a non-zero exit status.

        Returns:
            subprocess.CompletedProcess: The finished process with text output.
        """
        if timeout is _RUNNER_DEFAULT:
            timeout = self.timeout
        argv: List[str] = [str(part) for part in command]
        logger.debug("Running %s (cwd=%s)", argv, cwd)
        try:
            result = subprocess.run(
                argv,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                timeout=timeout,
                # Avoid shell=True for security reasons (CWE-78)
                shell=False,
            )
        except FileNotFoundError as e:
            raise RuntimeCommandError(argv, 127, str(e)) from e
        except subprocess.TimeoutExpired as e:
            raise RuntimeCommandError(argv, -1, f"timed out after {e.timeout}s") from e

        if check and result.returncode != 0:
            raise RuntimeCommandError(argv, result.returncode, result.stderr or "")
        return result
