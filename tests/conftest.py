import asyncio
import socket
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src" / "py"))

from photosbridge.assets import (  # NOQA: E402
	AssetContent,
	AssetStore,
	Authorization,
	RequestOptions,
)
from photosbridge.server import Bridge, ServerOptions  # NOQA: E402
from photosbridge.state import BridgeState  # NOQA: E402

PNG: bytes = b"\x89PNG\r\n\x1a\n" + bytes(range(256)) * 4
HEIC: bytes = b"\x00\x00\x00\x18ftypheic" + b"\x01\x02\x03" * 100


class FakeAssetStore(AssetStore):
	"""An in-memory store. An asset mapped to an exception raises it on
	load, one mapped to `None` fails to load."""

	def __init__(
		self,
		assets: dict[str, AssetContent | Exception | None] | None = None,
		status: Authorization = Authorization.Authorized,
		delay: float = 0.0,
	):
		self.assets: dict[str, AssetContent | Exception | None] = assets or {}
		self.status: Authorization = status
		self.delay: float = delay
		self.lookups: list[str] = []
		self.loads: list[RequestOptions] = []

	def authorization(self) -> Authorization:
		return self.status

	async def lookup(self, id: str) -> Any | None:
		self.lookups.append(id)
		return id if id in self.assets else None

	async def load(self, asset: Any, options: RequestOptions) -> AssetContent | None:
		self.loads.append(options)
		if self.delay:
			await asyncio.sleep(self.delay)
		content = self.assets[asset]
		if isinstance(content, Exception):
			raise content
		return content


@pytest.fixture
def store() -> FakeAssetStore:
	return FakeAssetStore(
		{
			"A/L0/001": AssetContent(PNG, "public.png"),
			"B/L0/001": AssetContent(HEIC, "public.heic"),
			"C/L0/001": AssetContent(b"GIF89a", "com.compuserve.gif"),
			"D/L0/001": AssetContent(b"\xff\xd8\xff", None),
			"broken": None,
			"raising": OSError("iCloud download failed"),
		}
	)


def bridgeOptions(**kwargs: Any) -> ServerOptions:
	return ServerOptions(
		host="127.0.0.1",
		port=0,
		timeout=5.0,
		polling=0.05,
		stopSignals=False,
	)._replace(**kwargs)


@asynccontextmanager
async def serving(
	store: AssetStore, state: BridgeState | None = None, **options: Any
) -> AsyncIterator[Bridge]:
	"""Runs a bridge on a free port for the duration of the block."""
	bridge = Bridge(store, state, bridgeOptions(**options))
	task = await bridge.start()
	assert task is not None
	while bridge.listener.port is None and not task.done():
		await asyncio.sleep(0.01)
	try:
		yield bridge
	finally:
		bridge.stop()
		await asyncio.wait_for(task, timeout=5.0)


async def fetch(port: int, payload: bytes) -> bytes:
	"""Sends the payload as is and returns everything read until the server
	closes the connection."""
	reader, writer = await asyncio.open_connection("127.0.0.1", port)
	try:
		writer.write(payload)
		await writer.drain()
		return await asyncio.wait_for(reader.read(), timeout=5.0)
	finally:
		writer.close()


async def get(port: int, target: str) -> bytes:
	return await fetch(
		port, f"GET {target} HTTP/1.1\r\nHost: 127.0.0.1\r\n\r\n".encode("ascii")
	)


def parseResponse(payload: bytes) -> tuple[str, dict[str, str], bytes]:
	"""Returns the status line, headers and body of a raw response."""
	head, _, body = payload.partition(b"\r\n\r\n")
	lines = head.decode("ascii").split("\r\n")
	headers: dict[str, str] = {}
	for line in lines[1:]:
		k, _, v = line.partition(":")
		headers[k.strip()] = v.strip()
	return lines[0], headers, body


def socketpair() -> tuple[socket.socket, socket.socket]:
	"""Returns a non-blocking server end and a blocking client end."""
	server, client = socket.socketpair()
	server.setblocking(False)
	return server, client


# EOF
