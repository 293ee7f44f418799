import logging
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from piframe.constants import (
    FNAME_FRAME_CONFIG,
    FNAME_FRAME_SCHEMA,
    HTTP_BIND_ADDRESS,
    PATH_APP_CONFIG,
    PATH_USER_CONFIG,
    QUIT_GRACE_PERIOD,
)
from piframe.daemon.http_server import ControlServer
from piframe.daemon.quit_reason import QuitReason
from piframe.library.exceptions import FrameDisposedError
from piframe.library.frame_config import FrameConfig, load_frame_config, save_frame_config
from piframe.library.scheduler import RecurringScheduler
from piframe.library.system_utils import run_os_command
from piframe.providers.renderers import Renderer, create_renderer
from piframe.providers.screens import Screen, create_screen

logger = logging.getLogger(__name__)


class FrameController:
    """
    Central controller object for the picture frame.

    Owns the configuration, the screen and renderer, the daily wake/sleep
    alarms, the picture rotation and refresh threads, and the control server.
    `run()` blocks until the control server reports a quit reason and then
    carries out what that reason asks for; `dispose()` tears everything down.

    Collaborators left as None are built from the configuration in `init()`.

    Args:
        config_file (Path): YAML configuration; created with defaults if missing.
        schema_file (Path): schema the configuration is checked against.
        screen (Screen): screen to control.
        renderer (Renderer): picture renderer.
        scheduler (RecurringScheduler): alarm scheduler.
        grace_period (float): seconds between a quit request and acting on it.
        command_runner (callable): runs reboot/shutdown command lines.
        http_host (str): address the control server binds.
        http_port (int): overrides the configured port (0 picks a free one).
    """

    def __init__(
        self,
        config_file: Optional[Path] = None,
        schema_file: Path = PATH_APP_CONFIG / FNAME_FRAME_SCHEMA,
        screen: Optional[Screen] = None,
        renderer: Optional[Renderer] = None,
        scheduler: Optional[RecurringScheduler] = None,
        grace_period: float = QUIT_GRACE_PERIOD,
        command_runner: Callable[[str], bool] = run_os_command,
        http_host: str = HTTP_BIND_ADDRESS,
        http_port: Optional[int] = None,
    ):
        self.config_file = Path(config_file) if config_file else PATH_USER_CONFIG / FNAME_FRAME_CONFIG
        self.schema_file = schema_file
        self.screen = screen
        self.renderer = renderer
        self.scheduler = scheduler
        self.grace_period = grace_period
        self.command_runner = command_runner
        self.http_host = http_host
        self.http_port = http_port
        self.server: Optional[ControlServer] = None
        self.log = logger

        self._config: Optional[FrameConfig] = None
        self._config_lock = threading.Lock()

        self._running = False
        self._running_lock = threading.Lock()

        self._disposed = False
        # re-entrant: a signal handler may call dispose() while run() holds it
        self._dispose_lock = threading.RLock()
        self._disposed_event = threading.Event()

        self._rotation_event = threading.Event()
        self._advance_requested = False
        self._advance_lock = threading.Lock()
        self._rotation_thread: Optional[threading.Thread] = None

        self._refresh_event = threading.Event()
        self._refresh_thread: Optional[threading.Thread] = None

        # the rotation and refresh threads (and a directory change) all drive the renderer
        self._renderer_lock = threading.Lock()

        self._alarm_lock = threading.Lock()
        self._awake_event_id: Optional[int] = None
        self._sleep_event_id: Optional[int] = None

    # ---- Properties ---------------------------------------------------------

    @property
    def is_running(self) -> bool:
        with self._running_lock:
            return self._running

    @property
    def is_disposed(self) -> bool:
        with self._dispose_lock:
            return self._disposed

    @property
    def current_picture_location(self) -> str:
        """Path of the picture on screen, '' if there is none."""
        if self.renderer is None:
            return ''
        return self.renderer.current_picture_path

    @property
    def picture_count(self) -> Optional[int]:
        if self.renderer is None:
            return None
        return self.renderer.picture_count

    # ---- Setup --------------------------------------------------------------

    def init(self, log: Optional[logging.Logger] = None) -> None:
        """
        Load (or create) the configuration and build the collaborators.

        Args:
            log (logging.Logger): where the frame and its control server log.

        Raises:
            ValueError: the configuration file can not be parsed.
            ConfigurationError: the configuration is invalid.
            RendererError: the renderer could not be started.
        """
        if log is not None:
            self.log = log

        config = load_frame_config(self.config_file, self.schema_file)
        with self._config_lock:
            self._config = config

        if self.screen is None:
            self.screen = create_screen(config.brightness_mapping, config.brightness)
        if self.renderer is None:
            self.renderer = create_renderer(config.renderer)
        if self.scheduler is None:
            self.scheduler = RecurringScheduler()

        self._apply_brightness(config)

        self.renderer.init(config.photo_directory)
        if self.picture_count is not None:
            self.log.info(f'Pictures Found: {self.picture_count}')

        self._schedule_alarms(config)

        port = config.http_port if self.http_port is None else self.http_port
        self.server = ControlServer(self, port=port, host=self.http_host, log=self.log.getChild('http'))

    # ---- Configuration ------------------------------------------------------

    def get_current_config(self) -> FrameConfig:
        """A deep copy of the configuration in effect."""
        with self._config_lock:
            if self._config is None:
                raise RuntimeError('init() must be called first')
            return self._config.copy()

    def configure(self, new_config: FrameConfig) -> None:
        """
        Validate and apply a new configuration, then save it.

        The brightness and wake/sleep alarms take effect right away. A changed
        photo change interval wakes the rotation thread so the new interval
        starts now. A changed port only applies after a restart.

        Raises:
            ConfigurationError: `new_config` is invalid; nothing was changed.
        """
        new_config = new_config.copy()
        new_config.validate()

        with self._config_lock:
            if self._config is None:
                raise RuntimeError('init() must be called first')
            old_config = self._config
            self._config = new_config

        self.log.info('Applying new configuration')
        self._apply_brightness(new_config)
        self._schedule_alarms(new_config)

        if not save_frame_config(new_config, self.config_file, backup=True):
            self.log.error(f'New configuration is in effect but could not be saved to {self.config_file}')

        if new_config.photo_directory != old_config.photo_directory:
            self._change_picture_directory(new_config.photo_directory)

        if new_config.photo_change_interval != old_config.photo_change_interval:
            self._rotation_event.set()

        if new_config.photo_refresh_interval != old_config.photo_refresh_interval:
            self._refresh_event.set()

        if new_config.http_port != old_config.http_port:
            self.log.info(f'HTTP port changed to {new_config.http_port}, takes effect after a restart')

        if new_config.renderer != old_config.renderer:
            self.log.info(f'Renderer changed to {new_config.renderer}, takes effect after a restart')

    def _apply_brightness(self, config: FrameConfig) -> None:
        self.screen.brightness = config.brightness

    def _change_picture_directory(self, directory: str) -> None:
        self.log.info(f'Photo directory changed to {directory}, restarting renderer')
        with self._renderer_lock:
            try:
                self.renderer.dispose()
                self.renderer.init(directory)
            except Exception as e:
                self.log.exception(f'Could not restart renderer on {directory}: {e}')

    # ---- Wake/sleep alarms --------------------------------------------------

    def _schedule_alarms(self, config: FrameConfig) -> None:
        with self._alarm_lock:
            for event_id in (self._awake_event_id, self._sleep_event_id):
                if event_id is not None:
                    self.scheduler.stop_event(event_id)
            self._awake_event_id = None
            self._sleep_event_id = None

            if config.awake_time is not None:
                self._awake_event_id = self.scheduler.schedule_daily_event(config.awake_time, self._wake_screen)
                self.log.info(f'Screen will turn on daily at {config.awake_time:%H:%M}')

            if config.sleep_time is not None:
                self._sleep_event_id = self.scheduler.schedule_daily_event(config.sleep_time, self._sleep_screen)
                self.log.info(f'Screen will turn off daily at {config.sleep_time:%H:%M}')

    def _wake_screen(self) -> None:
        self.log.info('Waking up screen')
        self.screen.is_on = True

    def _sleep_screen(self) -> None:
        self.log.info('Putting screen to sleep')
        self.screen.is_on = False

    # ---- Running ------------------------------------------------------------

    def toggle_next_photo(self) -> None:
        """Show the next picture now rather than when the interval runs out."""
        with self._advance_lock:
            self._advance_requested = True
        self._rotation_event.set()

    def run(self) -> QuitReason:
        """
        Run the frame until a quit reason arrives, then act on it.

        Returns:
            QuitReason: why the frame stopped. For FATAL_ERROR this only returns
                once `dispose()` is called.

        Raises:
            FrameDisposedError: if `dispose()` was already called.
        """
        with self._dispose_lock:
            if self._disposed:
                raise FrameDisposedError('Can not run a disposed frame')
            if self.server is None:
                raise RuntimeError('init() must be called first')

            with self._running_lock:
                if self._running:
                    raise RuntimeError('Frame is already running')
                self._running = True

            self._rotation_thread = threading.Thread(target=self._rotation_loop, name='picture-rotation', daemon=True)
            self._rotation_thread.start()
            self._refresh_thread = threading.Thread(target=self._refresh_loop, name='picture-refresh', daemon=True)
            self._refresh_thread.start()

        self.server.start()
        reason = self.server.wait_for_quit_event()

        # if dispose was called, quit right away; the system may be shutting down
        if self.is_disposed:
            self.log.info(f'Frame disposed, quit reason {reason.value}')
            return reason

        self.log.info(f'Waiting {self.grace_period} seconds before handling quit event...')
        self._disposed_event.wait(self.grace_period)
        if self.is_disposed:
            self.log.info(f'Frame disposed during grace period, not acting on {reason.value}')
            return reason
        self.log.info(f'Waiting {self.grace_period} seconds before handling quit event...Done!')

        self.handle_quit_reason(reason)
        return reason

    def run_async(self) -> Future:
        """Run the frame on a background thread; the future resolves to the quit reason."""
        future = Future()

        def target():
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self.run())
            except BaseException as e:
                future.set_exception(e)

        threading.Thread(target=target, name='frame-run', daemon=True).start()
        return future

    def handle_quit_reason(self, reason: QuitReason) -> None:
        self.log.info(f'Reason for Quitting: {reason.value}')

        if reason is QuitReason.DISPOSED:
            self.log.info('Stop called, no additional action.')

        elif reason is QuitReason.EXIT_TO_DESKTOP:
            self.log.info('Exiting to desktop.')

        elif reason is QuitReason.RESTARTING:
            self._run_command(self.get_current_config().reboot_command, 'restart')

        elif reason is QuitReason.SHUTTING_DOWN:
            self._run_command(self.get_current_config().shutdown_command, 'shutdown')

        elif reason is QuitReason.FATAL_ERROR:
            self.log.critical(
                'The control server failed. The frame keeps showing pictures; '
                'restart the process to get the web interface back.'
            )
            # parked until an explicit stop; the process must not exit on its own
            self._disposed_event.wait()
            self.log.info('Frame disposed, leaving fatal error state')

        else:
            self.log.error(f'This should never happen: handling quit reason {reason.value}')

    def _run_command(self, command: str, action: str) -> None:
        self.log.info(f'Starting {action}: {command}')
        try:
            if not self.command_runner(command):
                self.log.error(f'{action} command failed: {command}')
        except Exception as e:
            self.log.exception(f'{action} command raised: {e}')

    # ---- Background activities ----------------------------------------------

    def _read_config(self, key: str):
        with self._config_lock:
            return getattr(self._config, key)

    def _rotation_loop(self) -> None:
        self.log.debug('Rotation thread started')
        while self.is_running:
            interval = self._read_config('photo_change_interval')
            signalled = self._rotation_event.wait(interval)
            self._rotation_event.clear()

            if not self.is_running:
                break

            # a signal without a request only means the interval changed: start waiting again
            with self._advance_lock:
                advance = not signalled or self._advance_requested
                self._advance_requested = False

            if advance:
                self._advance_picture()

        self.log.debug('Rotation thread exited')

    def _advance_picture(self) -> None:
        with self._renderer_lock:
            try:
                self.renderer.go_to_next_picture()
            except Exception as e:
                self.log.exception(f'Could not change picture: {e}')
                return
        self.log.info(f'Changed picture: {self.current_picture_location or "(pending)"}')

    def _refresh_loop(self) -> None:
        self.log.debug('Refresh thread started')
        while self.is_running:
            interval = self._read_config('photo_refresh_interval')
            # 0 means never: sleep until a configuration change or dispose
            signalled = self._refresh_event.wait(interval if interval > 0 else None)
            self._refresh_event.clear()

            if not self.is_running:
                break
            if signalled:
                continue

            with self._renderer_lock:
                try:
                    self.renderer.refresh_pictures()
                except Exception as e:
                    self.log.exception(f'Could not refresh pictures: {e}')
                    continue
            if self.picture_count is not None:
                self.log.info(f'Pictures Found: {self.picture_count}')

        self.log.debug('Refresh thread exited')

    # ---- Teardown -----------------------------------------------------------

    def dispose(self) -> List[Tuple[str, Exception]]:
        """
        Stop the background threads and dispose the control server, scheduler
        and renderer, in that order. Safe to call more than once.

        Every step runs even if an earlier one fails.

        Returns:
            list: (step, exception) for each step that failed.
        """
        with self._dispose_lock:
            if self._disposed:
                return []
            self._disposed = True
            self._disposed_event.set()

        self.log.info('Disposing picture frame...')
        with self._running_lock:
            self._running = False
        self._rotation_event.set()
        self._refresh_event.set()

        steps = (
            ('rotation thread', lambda: self._join(self._rotation_thread)),
            ('refresh thread', lambda: self._join(self._refresh_thread)),
            ('control server', lambda: self.server and self.server.dispose()),
            ('scheduler', lambda: self.scheduler and self.scheduler.dispose()),
            ('renderer', self._dispose_renderer),
        )

        errors = []
        for name, step in steps:
            try:
                step()
            except Exception as e:
                self.log.exception(f'Error disposing {name}: {e}')
                errors.append((name, e))

        if errors:
            self.log.error(f'Disposing picture frame...Done with {len(errors)} error(s): {[name for name, _ in errors]}')
        else:
            self.log.info('Disposing picture frame...Done!')
        return errors

    @staticmethod
    def _join(thread: Optional[threading.Thread]) -> None:
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _dispose_renderer(self) -> None:
        if self.renderer is None:
            return
        with self._renderer_lock:
            self.renderer.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.dispose()
