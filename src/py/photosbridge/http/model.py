from typing import NamedTuple

from ..utils.io import asBytes
from .status import HTTP_STATUS

# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""Represents a request line, with the target left undecoded."""

	method: str
	target: str
	protocol: str | None = None


class HTTPRequest(NamedTuple):
	"""A decoded request: the path and the query parameters. Duplicate
	query keys keep their last value."""

	method: str
	path: str
	query: dict[str, str]

	def param(self, name: str, default: str | None = None) -> str | None:
		return self.query.get(name, default)

	def __str__(self) -> str:
		return f"Request({self.method} {self.path}{f'?{self.query}' if self.query else ''})"


# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class HTTPRequestError(Exception):
	"""Raised when a request can't be decoded, carries the status to
	respond with."""

	def __init__(self, message: str, status: int = 400):
		super().__init__(message)
		self.message: str = message
		self.status: int = status


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse(NamedTuple):
	"""A complete response: there is no streaming, the body is always known
	upfront and the connection is always closed afterwards."""

	status: int
	contentType: str
	body: bytes

	@staticmethod
	def Create(
		status: int, content: str | bytes | None, contentType: str = "text/plain"
	) -> "HTTPResponse":
		return HTTPResponse(status, contentType, asBytes(content))

	@property
	def message(self) -> str:
		return HTTP_STATUS.get(self.status, "Unknown status")

	@property
	def headers(self) -> dict[str, str]:
		return {
			"Content-Type": self.contentType,
			"Content-Length": str(len(self.body)),
			"Access-Control-Allow-Origin": "*",
			"Connection": "close",
		}

	def head(self) -> bytes:
		"""Serializes the status line and headers, including the blank line
		that separates them from the body."""
		lines: list[str] = [f"{k}: {v}" for k, v in self.headers.items()]
		lines.insert(0, f"HTTP/1.1 {self.status} {self.message}")
		lines.append("")
		lines.append("")
		return "\r\n".join(lines).encode("ascii")

	def __str__(self) -> str:
		return f"Response({self.status} {self.message} {self.contentType} {len(self.body)}b)"


# EOF
