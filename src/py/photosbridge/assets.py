from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, NamedTuple

from mypy_extensions import mypyc_attr

from .state import StatusSink
from .utils.logging import LogLevel, exception

# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class Authorization(Enum):
	"""The asset store's verdict on whether we may read from it."""

	NotDetermined = 0
	Restricted = 1
	Denied = 2
	Authorized = 3
	Limited = 4

	@property
	def isGranted(self) -> bool:
		return self is Authorization.Authorized or self is Authorization.Limited


class AssetVersion(Enum):
	Current = "current"


class RequestOptions(NamedTuple):
	"""How the store should produce the bytes of an asset."""

	version: AssetVersion = AssetVersion.Current
	highQuality: bool = True
	networkAccessAllowed: bool = True


class AssetContent(NamedTuple):
	"""What the store returns: raw bytes and an opaque format tag (such as
	`public.heic`)."""

	data: bytes
	formatTag: str | None = None


class AssetData(NamedTuple):
	data: bytes
	contentType: str


class AssetError(Enum):
	NotFound = 404
	AccessDenied = 403
	LoadFailure = 500


AssetResult = AssetData | AssetError

# NOTE: Order matters, a tag matching more than one picks the first.
FORMAT_CONTENT_TYPES: tuple[tuple[str, str], ...] = (
	("png", "image/png"),
	("heic", "image/heic"),
	("gif", "image/gif"),
)
DEFAULT_CONTENT_TYPE: str = "image/jpeg"


def contentType(formatTag: str | None) -> str:
	"""Maps a store format tag to a MIME type, by substring."""
	if formatTag:
		for fragment, mime in FORMAT_CONTENT_TYPES:
			if fragment in formatTag:
				return mime
	return DEFAULT_CONTENT_TYPE


# -----------------------------------------------------------------------------
#
# STORE
#
# -----------------------------------------------------------------------------


# NOTE: Stores are implemented outside of this package, so they need to be able
# to subclass this when it is compiled with mypyc.
@mypyc_attr(allow_interpreted_subclasses=True)
class AssetStore(ABC):
	"""The keyed binary-content repository the bridge exposes. Asset handles
	are opaque to the bridge."""

	@abstractmethod
	def authorization(self) -> Authorization: ...

	async def requestAuthorization(self) -> Authorization:
		"""Asks for access (which may prompt the user) and returns the
		resulting decision."""
		return self.authorization()

	@abstractmethod
	async def lookup(self, id: str) -> Any | None:
		"""Returns the handle of the asset with the given id, or `None`."""
		...

	@abstractmethod
	async def load(self, asset: Any, options: RequestOptions) -> AssetContent | None:
		"""Returns the content of the given asset, `None` when it is not
		available."""
		...


# -----------------------------------------------------------------------------
#
# FETCHER
#
# -----------------------------------------------------------------------------


class AssetFetcher:
	"""Resolves an asset id to its bytes and content type. There is a single
	attempt, errors are returned as `AssetError` values."""

	def __init__(
		self,
		store: AssetStore,
		sink: StatusSink,
		options: RequestOptions = RequestOptions(),
	) -> None:
		self.store: AssetStore = store
		self.sink: StatusSink = sink
		self.options: RequestOptions = options

	async def fetch(self, id: str) -> AssetResult:
		if not self.store.authorization().isGranted:
			self.sink.log(f"Access to Photos not granted: {id}", level=LogLevel.Warning)
			return AssetError.AccessDenied
		try:
			asset = await self.store.lookup(id)
		except Exception as e:
			exception(e, f"Asset lookup failed: {id}")
			self.sink.log(f"Asset lookup failed: {id}", level=LogLevel.Error)
			return AssetError.LoadFailure
		if asset is None:
			self.sink.log(f"Asset not found: {id}")
			return AssetError.NotFound
		try:
			content = await self.store.load(asset, self.options)
		except Exception as e:
			exception(e, f"Asset load failed: {id}")
			content = None
		if content is None:
			self.sink.log("Failed to load image data", level=LogLevel.Error, Id=id)
			return AssetError.LoadFailure
		return AssetData(content.data, contentType(content.formatTag))


# EOF
