import enum


class QuitReason(enum.Enum):
    """Why the control server stopped waiting; decides what happens to the system."""

    # still running
    NONE = 'None'
    # dispose() was called on the server or the frame
    DISPOSED = 'Disposed'
    # the user wants the system to reboot
    RESTARTING = 'Restarting'
    # the user wants the system to power off
    SHUTTING_DOWN = 'ShuttingDown'
    # the user wants to leave the frame and go back to the desktop
    EXIT_TO_DESKTOP = 'ExitToDesktop'
    # the accept loop died; the frame must keep running until someone intervenes
    FATAL_ERROR = 'FatalError'
