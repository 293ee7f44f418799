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

class FrameError(Exception):
    """General-purpose error for the picture frame."""


class ConfigurationError(FrameError):
    def __init__(self, problems: dict, message: str = None):
        """
        Exception raised when a configuration is rejected.

        Args:
            problems (dict): Mapping of field name to a human readable description
                of what is wrong with that field.
            message (str): Optional summary; built from `problems` when omitted.
        """
        self.problems = dict(problems or {})
        if message is None:
            message = '; '.join(f'{key}: {value}' for key, value in self.problems.items())
        super().__init__(message or 'Invalid configuration')


class RendererError(FrameError):
    """Exception raised when the picture renderer can not be started or driven."""


class FrameDisposedError(FrameError):
    """Exception raised when a disposed frame is asked to run."""
