from os import getenv
from .utils.io import DEFAULT_ENCODING  # NOQA: F401

# The well-known port clients (ie. the note-taking plugin) connect to.
PORT: int = int(getenv("PHOTOSBRIDGE_PORT", 27345))

# The bridge exposes the photo library, so it stays on loopback unless told
# otherwise.
HOST: str = getenv("PHOTOSBRIDGE_HOST", "127.0.0.1")

# Maximum size of the single read that must hold the request line
READ_SIZE: int = int(getenv("PHOTOSBRIDGE_READ_SIZE", 65_536))

# Read/write timeout in seconds, 0 disables it.
TIMEOUT: float = float(getenv("PHOTOSBRIDGE_TIMEOUT", 30.0))

LOG_CAPACITY: int = int(getenv("PHOTOSBRIDGE_LOG_CAPACITY", 1_000))

LOG_LEVEL: str = getenv("PHOTOSBRIDGE_LOG_LEVEL", "Info")

ROOT: str | None = getenv("PHOTOSBRIDGE_ROOT")

# EOF
