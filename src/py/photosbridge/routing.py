from typing import NamedTuple

from .assets import AssetData, AssetError, AssetResult
from .http.model import HTTPRequestError, HTTPResponse
from .http.parser import parseTarget
from .state import StatusSink
from .utils.logging import LogLevel, debug

ROOT_BODY: str = "PhotosBridge is running"

ASSET_ERRORS: dict[AssetError, HTTPResponse] = {
	AssetError.NotFound: HTTPResponse.Create(404, "Image not found"),
	AssetError.AccessDenied: HTTPResponse.Create(403, "Access to Photos not granted"),
	AssetError.LoadFailure: HTTPResponse.Create(500, "Could not load image data"),
}

NOT_FOUND: HTTPResponse = HTTPResponse.Create(404, "Not Found")
INVALID_URL: HTTPResponse = HTTPResponse.Create(400, "Invalid URL")


class FetchAsset(NamedTuple):
	"""Dispatch outcome for a request that needs an asset to be fetched."""

	id: str


class Router:
	"""Maps a request to either a response or an asset to fetch. Dispatch
	is synchronous, fetching is left to the caller."""

	def __init__(self, sink: StatusSink | None = None) -> None:
		self.sink: StatusSink | None = sink

	def resolve(self, target: str) -> HTTPResponse | FetchAsset:
		"""Decodes the raw request target and routes it."""
		try:
			request = parseTarget(target)
		except HTTPRequestError as e:
			debug("Invalid request target", Reason=e.message)
			if self.sink:
				self.sink.log(f"Invalid URL: {target}", level=LogLevel.Warning)
			return INVALID_URL
		return self.route(request.path, request.query)

	def route(self, path: str, query: dict[str, str]) -> HTTPResponse | FetchAsset:
		match path:
			case "/":
				return HTTPResponse.Create(200, ROOT_BODY)
			case "/image" if "id" in query:
				return FetchAsset(query["id"])
			case _:
				return NOT_FOUND

	def respondAsset(self, result: AssetResult) -> HTTPResponse:
		if isinstance(result, AssetData):
			return HTTPResponse(200, result.contentType, result.data)
		else:
			return ASSET_ERRORS[result]


# EOF
