DEFAULT_ENCODING: str = "utf8"
EOL: bytes = b"\r\n"
LF: bytes = b"\n"


def asBytes(value: str | bytes | bytearray | None) -> bytes:
	if isinstance(value, bytes):
		return value
	elif isinstance(value, bytearray):
		return bytes(value)
	elif isinstance(value, str):
		return bytes(value, DEFAULT_ENCODING)
	elif value is None:
		return b""
	else:
		raise ValueError(f"Expected bytes or str, got: {value}")


def firstLine(chunk: bytes) -> bytes:
	"""Returns the chunk up to its first line terminator, which is `CRLF`
	or a bare `LF`. The whole chunk is returned when there is none."""
	end = chunk.find(LF)
	if end == -1:
		return chunk
	elif end > 0 and chunk[end - 1] == EOL[0]:
		return chunk[: end - 1]
	else:
		return chunk[:end]


# EOF
