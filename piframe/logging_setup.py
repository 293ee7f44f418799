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
import sys

from piframe.constants import LOG_FORMAT, DATE_FORMAT


# +

def setup_logging(level=logging.INFO):
    # Set up the root logger
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    if logger.hasHandlers():
        logger.handlers.clear()

    # Create a console handler
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    handler.setFormatter(formatter)

    # Attach the handler to the root logger
    logger.addHandler(handler)

    logger.debug("Logger setup complete. Ready to capture logs.")

    return logger

# -
