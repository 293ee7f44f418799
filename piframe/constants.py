# constants.py
from pathlib import Path

### Paths
PATH_APP_CONFIG = Path(__file__).parent / "config"
PATH_DAEMON_CONFIG = Path("/etc/piframe/")
PATH_USER_CONFIG = Path("~/.config/com.piframe/").expanduser()
PATH_STATIC = Path(__file__).parent / "daemon" / "static"


# Files
FNAME_FRAME_SCHEMA = "piframe_config_schema.yaml"
FNAME_FRAME_CONFIG = "piframe_config.yaml"

# Dict keys
# root key of the configuration document
KEY_FRAME_CONFIG = 'pictureframeconfig'
# previous versions of the config file kept when settings are changed
CONFIG_BACKUPS = 2


### Logging
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_LEVEL = "INFO"

### HTTP control server
DEFAULT_HTTP_PORT = 80
HTTP_BIND_ADDRESS = '0.0.0.0'
# seconds the accept loop waits in select() before re-checking whether it should stop
HTTP_POLL_INTERVAL = 0.5

### Lifecycle
# delay between a quit request and acting on it so the confirmation page reaches the browser
QUIT_GRACE_PERIOD = 5
# seconds an OS command (reboot/shutdown) may run before it is abandoned
OS_COMMAND_TIMEOUT = 60

### Scheduling
SECONDS_PER_DAY = 24 * 60 * 60

### Pictures
PICTURE_EXTENSIONS = ('jpg', 'jpeg', 'png', 'gif', 'tiff')

### Screen (Raspberry Pi official touch screen)
FILE_BACKLIGHT_BRIGHTNESS = Path("/sys/class/backlight/rpi_backlight/brightness")
FILE_BACKLIGHT_POWER = Path("/sys/class/backlight/rpi_backlight/bl_power")

### Renderer
PQIV_EXECUTABLE = "/usr/bin/pqiv"
PQIV_QUIT_TIMEOUT = 10
