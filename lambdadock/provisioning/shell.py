"""Shell command execution helper."""

import logging
import subprocess

logger = logging.getLogger(__name__)


def run_shell_cmd(command, dry_run=False, input=None, timeout=1800):
    """Run a shell command and return (returncode, stdout, stderr).

    Args:
        command: list of command arguments
        dry_run: if True, log the command instead of executing
        input: optional text fed to the command's stdin (never logged)
        timeout: maximum seconds to wait for the command

    Returns:
        (returncode, stdout, stderr) tuple
    """
    if dry_run:
        logger.info(f"[dry-run] {' '.join(command)}")
        return 0, "", ""

    try:
        result = subprocess.run(command, capture_output=True, text=True, input=input, timeout=timeout)
        return result.returncode, result.stdout, result.stderr
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out after {timeout}s: {' '.join(command)}")
        return 1, "", f"timed out after {timeout}s"
    except FileNotFoundError:
        logger.error(f"Error: '{command[0]}' not found. Is it installed and on PATH?")
        return 1, "", f"'{command[0]}' not found"
