#!/usr/bin/env python
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

# +
import sys
import argparse
import logging
import signal
from pathlib import Path

from piframe.constants import (
    FNAME_FRAME_CONFIG,
    FNAME_FRAME_SCHEMA,
    LOG_LEVEL,
    PATH_APP_CONFIG,
    PATH_DAEMON_CONFIG,
    PATH_USER_CONFIG,
)
from piframe.daemon.controller import FrameController
from piframe.daemon.quit_reason import QuitReason
from piframe.library.exceptions import FrameError
from piframe.library.system_utils import running_under_systemd, run_os_command
from piframe.logging_setup import setup_logging


logger = logging.getLogger(__name__)


# -

def parse_args(argv=None):

    # detect jupyter's ipykernel_launcher and trim the jupyter args
    if argv is None:
        if 'ipykernel_launcher' in sys.argv[0]:
            argv = sys.argv[3:]
        else:
            argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Pi Picture Frame")
    parser.add_argument("-d", "--daemon", action="store_true",
                        help="Run in daemon mode (use system-wide config)")

    parser.add_argument("-c", "--config", type=str, default=None,
                        help="Path to picture frame configuration yaml file")

    parser.add_argument(
        "-l", "--log_level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging output level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    return parser.parse_args(argv)


def config_file_path(args) -> Path:
    """Where the configuration lives: --config, else system-wide under systemd or -d, else per user."""
    if args.config:
        return Path(args.config).expanduser()

    if running_under_systemd() or args.daemon:
        return PATH_DAEMON_CONFIG / FNAME_FRAME_CONFIG

    return PATH_USER_CONFIG / FNAME_FRAME_CONFIG


def cleanup(msg: str = None, code: int = 0):
    if msg:
        print(msg)

    sys.exit(code)


def main(argv=None):
    args = parse_args(argv)

    # set logging level immediately to default or command line value
    log = setup_logging(args.log_level or LOG_LEVEL)
    if args.log_level:
        log.info(f'Logging level set at command line to: {args.log_level}')

    file_frame_config = config_file_path(args)
    log.info(f'Using configuration file: {file_frame_config}')

    frame = FrameController(
        config_file=file_frame_config,
        schema_file=PATH_APP_CONFIG / FNAME_FRAME_SCHEMA,
    )

    # Register our signal handlers
    signal.signal(signal.SIGINT, lambda s, f: frame.dispose())
    signal.signal(signal.SIGTERM, lambda s, f: frame.dispose())

    reason = QuitReason.NONE
    try:
        frame.init(log=logging.getLogger('piframe'))
        reason = frame.run()
    except (FrameError, ValueError, OSError) as e:
        logger.critical(f'Picture frame failed: {e}')
        cleanup(f'Failed to start picture frame: {e}', code=1)
    finally:
        frame.dispose()

    if reason is QuitReason.EXIT_TO_DESKTOP:
        command = frame.get_current_config().exit_to_desktop_command
        logger.info(f'Handing the session back to the desktop: {command}')
        run_os_command(command)

    logger.info('Cleaning up...')
    return reason


if __name__ == "__main__":
    main()
