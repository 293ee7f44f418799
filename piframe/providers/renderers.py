"""
Renderer collaborators: how pictures get onto the screen.

`PqivRenderer` drives the pqiv image viewer. pqiv is started in full screen
shuffle mode on the photo directory and is then controlled by writing action
lines to its stdin; it reports the file it is showing on stdout
(`CURRENT_FILE_NAME="..."`). `PqivConnection` wraps that protocol.

`HeadlessRenderer` shows nothing. It picks pictures with a `PictureListManager`
so the current picture can still be fetched over HTTP.
"""
import abc
import logging
import re
import subprocess
import threading
from typing import Optional

from piframe.constants import PQIV_EXECUTABLE, PQIV_QUIT_TIMEOUT
from piframe.library.exceptions import RendererError
from piframe.library.picture_list import PictureListManager

logger = logging.getLogger(__name__)


class Renderer(abc.ABC):
    """Displays pictures from a directory."""

    @property
    @abc.abstractmethod
    def current_picture_path(self) -> str:
        """Path of the picture on screen, '' if unknown."""

    @property
    def picture_count(self) -> Optional[int]:
        """Number of pictures available, None if the renderer does not know."""
        return None

    @abc.abstractmethod
    def init(self, picture_directory: str) -> None:
        """Start showing pictures from `picture_directory`."""

    @abc.abstractmethod
    def go_to_next_picture(self) -> None:
        ...

    def refresh_pictures(self) -> None:
        """Re-scan the picture directory."""

    @abc.abstractmethod
    def dispose(self) -> None:
        ...


class PqivConnection:
    """
    A running pqiv process and the line protocol used to talk to it.

    Lifecycle: `start()` -> `send()`... -> `quit()`. Output is read on a
    background thread; the last reported file name is kept in `current_file`.
    """

    CURRENT_FILE_RE = re.compile(r'CURRENT_FILE_NAME="(?P<file_name>.+)"')

    # --fullscreen, --hide-info-box: only the picture is visible
    # --end-of-files-action=wrap, --shuffle: cycle forever in random order
    # --watch-directories: pick up new files without a restart
    # --actions-from-stdin: take commands on stdin
    ARGUMENTS = (
        '--fullscreen',
        '--hide-info-box',
        '--fade',
        '--scale-images-up',
        '--end-of-files-action=wrap',
        '--shuffle',
        '--watch-directories',
        '--actions-from-stdin',
    )

    def __init__(self, picture_directory: str, executable: str = PQIV_EXECUTABLE):
        self.picture_directory = picture_directory
        self.executable = executable

        self._process: Optional[subprocess.Popen] = None
        self._reader: Optional[threading.Thread] = None
        self._send_lock = threading.Lock()
        self._current_lock = threading.Lock()
        self._current_file = ''

    @property
    def current_file(self) -> str:
        with self._current_lock:
            return self._current_file

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def check_executable(self) -> None:
        """
        Make sure the viewer can be run.

        Raises:
            RendererError: if `executable --help` fails.
        """
        try:
            result = subprocess.run([self.executable, '--help'], capture_output=True, check=False)
        except OSError as e:
            raise RendererError(f'Could not start {self.executable}: {e}')

        if result.returncode != 0:
            raise RendererError(f"Trying to execute '{self.executable} --help' failed with code {result.returncode}")

    def start(self) -> None:
        if self._process is not None:
            return

        self.check_executable()

        args = [self.executable, *self.ARGUMENTS, self.picture_directory]
        logger.info(f'Starting {" ".join(args)}')
        try:
            self._process = subprocess.Popen(
                args,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                bufsize=1,
            )
        except OSError as e:
            raise RendererError(f'Could not start {self.executable}: {e}')

        self._reader = threading.Thread(target=self._read_stdout, name='pqiv-stdout', daemon=True)
        self._reader.start()

        # makes pqiv print CURRENT_FILE_NAME= whenever the picture changes
        self.send('set_status_output(1)')

    def send(self, command: str) -> None:
        """
        Write one action line to pqiv.

        Raises:
            RendererError: if pqiv is not running or the pipe is closed.
        """
        with self._send_lock:
            if self._process is None or self._process.stdin is None:
                raise RendererError('pqiv is not running, call start() first')
            try:
                self._process.stdin.write(command + '\n')
                self._process.stdin.flush()
            except (BrokenPipeError, ValueError) as e:
                raise RendererError(f"Could not send '{command}' to pqiv: {e}")

        logger.debug(f'pqiv <- {command}')

    def quit(self, timeout: float = PQIV_QUIT_TIMEOUT) -> None:
        """Ask pqiv to exit, killing it if it does not within `timeout` seconds."""
        process = self._process
        if process is None:
            return

        if process.poll() is None:
            try:
                self.send('quit()')
            except RendererError as e:
                logger.warning(f'{e}')

            try:
                process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning(f'pqiv did not exit within {timeout}s, killing it')
                process.kill()
                process.wait()

        if process.stdin is not None:
            try:
                process.stdin.close()
            except OSError:
                pass

        if self._reader is not None:
            self._reader.join(timeout)

        self._process = None

    def _read_stdout(self) -> None:
        process = self._process
        if process is None or process.stdout is None:
            return

        for line in process.stdout:
            line = line.rstrip('\n')
            if not line:
                continue
            logger.debug(f'pqiv: {line}')
            self.handle_line(line)

    def handle_line(self, line: str) -> None:
        match = self.CURRENT_FILE_RE.search(line)
        if match:
            with self._current_lock:
                self._current_file = match.group('file_name')


class PqivRenderer(Renderer):

    def __init__(self, executable: str = PQIV_EXECUTABLE):
        self.executable = executable
        self.connection: Optional[PqivConnection] = None

    @property
    def current_picture_path(self) -> str:
        if self.connection is None:
            return ''
        return self.connection.current_file

    def init(self, picture_directory: str) -> None:
        self.connection = PqivConnection(picture_directory, self.executable)
        self.connection.start()

    def go_to_next_picture(self) -> None:
        if self.connection is None:
            raise RendererError('init() must be called first!')
        self.connection.send('goto_file_relative(1)')

    def dispose(self) -> None:
        if self.connection is None:
            return
        logger.info('Quitting pqiv...')
        self.connection.quit()
        logger.info('Quitting pqiv...Done!')


class HeadlessRenderer(Renderer):

    def __init__(self, picture_source: Optional[PictureListManager] = None):
        self.picture_source = picture_source or PictureListManager()
        self.picture_directory = None

    @property
    def current_picture_path(self) -> str:
        return self.picture_source.current_picture

    @property
    def picture_count(self) -> Optional[int]:
        return self.picture_source.found_photos

    def init(self, picture_directory: str) -> None:
        self.picture_directory = picture_directory
        self.picture_source.load(picture_directory)

    def go_to_next_picture(self) -> None:
        if self.picture_directory is None:
            raise RendererError('init() must be called first!')
        self.picture_source.next_picture()

    def refresh_pictures(self) -> None:
        if self.picture_directory is None:
            return
        self.picture_source.load(self.picture_directory)

    def dispose(self) -> None:
        self.picture_source.clear()


def create_renderer(name: str) -> Renderer:
    """
    Build the renderer named in the configuration.

    Raises:
        ValueError: for an unknown name.
    """
    if name == 'pqiv':
        return PqivRenderer()
    if name == 'headless':
        return HeadlessRenderer()
    raise ValueError(f'Unknown renderer: {name}')
