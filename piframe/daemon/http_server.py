"""
The HTTP control server.

The user may ask to restart, shut down or leave the frame from the web
interface. This server does not act on those requests itself: after `start()`
the owner calls `wait_for_quit_event()`, which returns the `QuitReason` once
one has been recorded. It is then up to the owner to dispose of the server and
do what the user asked for, preferably after a short delay so the browser
still gets the confirmation page (and its CSS/JS).
"""
from http.server import HTTPServer
import logging
import select
import threading
from typing import NamedTuple, Optional, Tuple

from piframe.constants import DEFAULT_HTTP_PORT, HTTP_BIND_ADDRESS, HTTP_POLL_INTERVAL
from piframe.daemon.http_handler import RootHandler
from piframe.daemon.quit_reason import QuitReason

logger = logging.getLogger(__name__)


class SettingsOptions(NamedTuple):
    """Choices offered by the settings page drop-downs."""
    hours: Tuple[int, ...]
    minutes: Tuple[int, ...]
    change_interval_minutes: Tuple[int, ...]
    refresh_interval_hours: Tuple[int, ...]

    @classmethod
    def build(cls) -> 'SettingsOptions':
        return cls(
            hours=tuple(range(0, 24)),
            minutes=tuple(range(0, 60)),
            change_interval_minutes=(1, 2, 3, 4, 5, 10, 15, 20, 30, 45, 60),
            # 0 means never
            refresh_interval_hours=(1, 2, 3, 4, 5, 0),
        )


class FrameHTTPServer(HTTPServer):
    """HTTPServer that gives request handlers access to the frame and control server."""

    def __init__(self, server_address, handler_class, control_server: 'ControlServer'):
        self.control_server = control_server
        super().__init__(server_address, handler_class)

    @property
    def frame(self):
        return self.control_server.frame

    def handle_error(self, request, client_address):
        # exceptions that escaped the request handler; the accept loop carries on
        self.control_server.log.exception(f'Caught exception when handling request from {client_address[0]}')


class ControlServer:
    """
    Serves the control pages on a dedicated accept-loop thread.

    Requests are handled one at a time on that thread.

    Args:
        frame: the `FrameController` the routes act on.
        port (int): port to listen on; 0 picks a free port.
        host (str): address to bind.
        log (logging.Logger): where to log; defaults to this module's logger.
    """

    def __init__(self, frame, port: int = DEFAULT_HTTP_PORT, host: str = HTTP_BIND_ADDRESS,
                 log: Optional[logging.Logger] = None):
        self.frame = frame
        self.host = host
        self.port = port
        self.log = log or logger
        self.settings_options = SettingsOptions.build()

        self.httpd: Optional[FrameHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

        self._state_lock = threading.Lock()
        self._is_listening = False
        self._disposed = False

        self._quit_reason_lock = threading.Lock()
        self._quit_reason = QuitReason.NONE
        self._quit_event = threading.Event()

    # ---- Properties ---------------------------------------------------------

    @property
    def quit_reason(self) -> QuitReason:
        """Why the server quit; NONE while running. Thread-safe."""
        with self._quit_reason_lock:
            return self._quit_reason

    @property
    def is_listening(self) -> bool:
        with self._state_lock:
            return self._is_listening

    @property
    def server_port(self) -> Optional[int]:
        """The port actually bound, None before `start()`."""
        if self.httpd is None:
            return None
        return self.httpd.server_address[1]

    # ---- Lifecycle ----------------------------------------------------------

    def start(self) -> None:
        """Open the listener and start the accept loop. No-op if already listening or disposed."""
        with self._state_lock:
            if self._is_listening:
                return
            if self._disposed:
                self.log.warning('Control server has been disposed, not starting')
                return

            self.httpd = FrameHTTPServer((self.host, self.port), RootHandler, self)
            self._is_listening = True
            self._thread = threading.Thread(target=self._accept_loop, name='http-accept-loop', daemon=True)
            self._thread.start()

        self.log.info(f'HTTP server running on port {self.server_port}')

    def dispose(self) -> None:
        """
        Stop accepting, join the accept loop and release the socket.

        Records DISPOSED unless a quit reason was already decided. Safe to call
        more than once.
        """
        self._set_quit_reason(QuitReason.DISPOSED)

        with self._state_lock:
            already_disposed = self._disposed
            self._disposed = True
            self._is_listening = False
            thread = self._thread
            httpd = self.httpd

        if not already_disposed and httpd is not None:
            self.log.info(f'Terminating server due to reason {self.quit_reason.value}...')
            if thread is not None and thread is not threading.current_thread():
                thread.join()
            httpd.server_close()
            self.log.info('Terminating server...Done!')

        self._quit_event.set()

    def wait_for_quit_event(self, timeout: Optional[float] = None) -> QuitReason:
        """
        Block until a quit reason has been recorded and return it.

        Args:
            timeout (float): give up after this many seconds and return the
                current reason (NONE if nothing was recorded).
        """
        self._quit_event.wait(timeout)
        return self.quit_reason

    def request_quit(self, reason: QuitReason) -> bool:
        """
        Record why the frame should quit and wake the waiter.

        The first reason wins; later calls leave it unchanged.

        Returns:
            bool: True if `reason` was recorded.
        """
        recorded = self._set_quit_reason(reason)
        if recorded:
            self.log.info(f'Quit requested: {reason.value}')
        self._quit_event.set()
        return recorded

    def _set_quit_reason(self, reason: QuitReason) -> bool:
        if reason is QuitReason.NONE:
            raise ValueError('Can not set the quit reason back to None')
        with self._quit_reason_lock:
            if self._quit_reason is not QuitReason.NONE:
                return False
            self._quit_reason = reason
            return True

    # ---- Accept loop --------------------------------------------------------

    def _accept_loop(self) -> None:
        httpd = self.httpd
        try:
            while self.is_listening:
                try:
                    rlist, _, _ = select.select([httpd.socket], [], [], HTTP_POLL_INTERVAL)
                except (OSError, ValueError):
                    if not self.is_listening:
                        # dispose() got here first; the loop condition ends things
                        self.log.info('Server got terminated, shutting down...')
                        continue
                    raise

                if rlist and self.is_listening:
                    httpd.handle_request()
        except Exception as e:
            self.log.exception(f'FATAL exception in HTTP listener. Aborting web server, but the frame will still run: {e}')
            with self._state_lock:
                self._is_listening = False
            self._set_quit_reason(QuitReason.FATAL_ERROR)

        # our thread is exiting, release whoever is waiting on us
        self._quit_event.set()
