import re
from urllib.parse import unquote, urlsplit

from ..utils.io import DEFAULT_ENCODING, firstLine
from .model import HTTPRequest, HTTPRequestError, HTTPRequestLine

# Characters allowed in a request target: unreserved, reserved and `%`.
RE_TARGET = re.compile(r"^[A-Za-z0-9\-._~:/?#\[\]@!$&'()*+,;=%]*$")
RE_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def parseRequestLine(chunk: bytes) -> HTTPRequestLine | None:
	"""Parses the request line out of the first bytes read from a client,
	returning `None` when there is no `METHOD SP TARGET` line to be found
	or when the line is not valid UTF-8."""
	try:
		line: str = firstLine(chunk).decode(DEFAULT_ENCODING)
	except UnicodeDecodeError:
		return None
	parts: list[str] = line.split(" ")
	if len(parts) < 2 or not parts[0]:
		return None
	return HTTPRequestLine(parts[0], parts[1], parts[2] if len(parts) > 2 else None)


def unescape(value: str) -> str:
	if RE_BAD_ESCAPE.search(value):
		raise HTTPRequestError(f"Malformed escape in: {value!r}")
	try:
		return unquote(value, encoding=DEFAULT_ENCODING, errors="strict")
	except UnicodeDecodeError as e:
		raise HTTPRequestError(f"Escape is not valid UTF-8 in: {value!r}") from e


def parseQuery(query: str) -> dict[str, str]:
	"""Decodes a query string. A key without `=` is skipped, while `key=`
	maps to the empty string. `+` is kept as is and the last value of a
	key wins."""
	res: dict[str, str] = {}
	for item in query.split("&"):
		if not item:
			continue
		key, sep, value = item.partition("=")
		if not sep:
			continue
		res[unescape(key)] = unescape(value)
	return res


def parseTarget(target: str, method: str = "GET") -> HTTPRequest:
	"""Decodes a request target into a path and query parameters, raising
	an `HTTPRequestError` when the target is not a valid URL."""
	if not RE_TARGET.match(target):
		raise HTTPRequestError(f"Invalid characters in target: {target!r}")
	try:
		# NOTE: The target is resolved against the local host, so that
		# anything that looks like an authority ends up in the path.
		url = urlsplit(f"http://localhost{target}")
	except ValueError as e:
		raise HTTPRequestError(f"Invalid target: {target!r}") from e
	return HTTPRequest(method, unescape(url.path), parseQuery(url.query))


# EOF
