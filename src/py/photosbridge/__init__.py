from .assets import (
	AssetStore,
	AssetContent,
	AssetData,
	AssetError,
	AssetFetcher,
	Authorization,
	RequestOptions,
)  # NOQA: F401
from .state import BridgeState, LogEvent, ServerStatus, StatusSink  # NOQA: F401
from .routing import Router  # NOQA: F401
from .server import Bridge, Listener, ServerOptions, run  # NOQA: F401
from .stores.files import DirectoryAssetStore  # NOQA: F401


# EOF
