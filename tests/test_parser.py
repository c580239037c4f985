import pytest

from photosbridge.http.model import HTTPRequestError, HTTPRequestLine, HTTPResponse
from photosbridge.http.parser import parseQuery, parseRequestLine, parseTarget
from photosbridge.utils.io import firstLine


def test_first_line():
	assert firstLine(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n") == b"GET / HTTP/1.1"
	assert firstLine(b"GET / HTTP/1.1\nHost: x") == b"GET / HTTP/1.1"
	assert firstLine(b"GET /") == b"GET /"
	assert firstLine(b"") == b""


def test_request_line():
	assert parseRequestLine(b"GET /image?id=1 HTTP/1.1\r\n\r\n") == HTTPRequestLine(
		"GET", "/image?id=1", "HTTP/1.1"
	)
	# The protocol is optional, like in HTTP/0.9
	assert parseRequestLine(b"GET /") == HTTPRequestLine("GET", "/", None)
	assert parseRequestLine(b"POST /image?id=1 HTTP/1.1\r\n").method == "POST"


@pytest.mark.parametrize(
	"chunk",
	[b"", b"GET", b"GET/image\r\n", b" /image HTTP/1.1\r\n", b"GET \xff\xfe HTTP/1.1"],
)
def test_request_line_malformed(chunk: bytes):
	assert parseRequestLine(chunk) is None


def test_query():
	assert parseQuery("id=1&size=2") == {"id": "1", "size": "2"}
	assert parseQuery("id=1&id=2") == {"id": "2"}
	assert parseQuery("id") == {}
	assert parseQuery("id=") == {"id": ""}
	assert parseQuery("id=1&id") == {"id": "1"}
	assert parseQuery("&&id=a%2Fb+c") == {"id": "a/b+c"}


def test_target():
	req = parseTarget("/image?id=ABC%2FL0%2F001")
	assert req.method == "GET"
	assert req.path == "/image"
	assert req.param("id") == "ABC/L0/001"
	assert parseTarget("/").query == {}
	assert parseTarget("/caf%C3%A9").path == "/café"
	# Anything looking like an authority stays in the path
	assert parseTarget("//example.com/image?id=1").path == "//example.com/image"


@pytest.mark.parametrize(
	"target",
	["/image?id=%zz", "/image?id=%FF", "/<script>", '/a"b', "/a|b", "/café", "/%"],
)
def test_target_invalid(target: str):
	with pytest.raises(HTTPRequestError) as e:
		parseTarget(target)
	assert e.value.status == 400


def test_response_head():
	res = HTTPResponse.Create(404, "Image not found")
	assert res.body == b"Image not found"
	assert res.head() == (
		b"HTTP/1.1 404 Not Found\r\n"
		b"Content-Type: text/plain\r\n"
		b"Content-Length: 15\r\n"
		b"Access-Control-Allow-Origin: *\r\n"
		b"Connection: close\r\n"
		b"\r\n"
	)


def test_response_length_is_encoded_length():
	res = HTTPResponse.Create(200, "café")
	assert res.headers["Content-Length"] == "5"


# EOF
