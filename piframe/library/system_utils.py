# ---
# jupyter:
#   jupytext:
#     text_representation:
#       extension: .py
#       format_name: light
#       format_version: '1.5'
#       jupytext_version: 1.16.4
#   kernelspec:
#     display_name: Python (piframe-venv)
#     language: python
#     name: piframe-venv
# ---

import logging
import os
import shlex
import subprocess

from piframe.constants import OS_COMMAND_TIMEOUT

logger = logging.getLogger(__name__)


def running_under_systemd():
    """
    A simple heuristic to detect if we're running under systemd.
    If these environment variables are present, systemd likely launched us.
    """
    return ('INVOCATION_ID' in os.environ) or ('JOURNAL_STREAM' in os.environ)


def run_os_command(command: str, timeout: float = OS_COMMAND_TIMEOUT) -> bool:
    """
    Run an OS command (e.g. reboot) and wait for it to finish.

    Failures are logged, never raised: by the time this runs the user has
    already been told the action is happening.

    Args:
        command (str): command line, split with shell rules.
        timeout (float): seconds to wait before giving up on the command.

    Returns:
        bool: True if the command ran and exited with status 0.
    """
    logger.info(f'Running: {command}')
    try:
        result = subprocess.run(
            shlex.split(command),
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, ValueError, subprocess.SubprocessError) as e:
        logger.error(f"Failed to run '{command}': {e}")
        return False

    if result.returncode != 0:
        logger.error(f"'{command}' exited with code {result.returncode}: {result.stderr.strip()}")
        return False

    logger.info(f"'{command}' completed")
    return True
