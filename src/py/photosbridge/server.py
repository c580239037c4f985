import asyncio
import errno
import itertools
import socket
import threading
from enum import Enum
from signal import SIGINT, SIGTERM
from typing import Any, Callable, NamedTuple

from .assets import AssetFetcher, AssetStore, RequestOptions
from .config import HOST, PORT, READ_SIZE, TIMEOUT
from .http.model import HTTPResponse
from .http.parser import parseRequestLine
from .routing import FetchAsset, Router
from .state import BridgeState, ServerStatus, StatusSink
from .utils.logging import LogLevel, debug, event, exception, logged


class ServerOptions(NamedTuple):
	host: str = HOST
	port: int = PORT
	backlog: int = 128
	# Maximum bytes of the single read the request line must fit in
	readsize: int = READ_SIZE
	# Read/write timeout, `None` or 0 to wait forever
	timeout: float | None = TIMEOUT
	# This is the polling timeout for accepting new requests, which is also
	# how long a stop may take to be noticed.
	polling: float = 1.0
	stopSignals: bool = True


OPTIONS: ServerOptions = ServerOptions()

# -----------------------------------------------------------------------------
#
# CONNECTIONS
#
# -----------------------------------------------------------------------------


class ConnectionPhase(Enum):
	Accepted = 0
	Reading = 1
	Dispatching = 2
	Writing = 3
	Closed = 4


class Connection:
	"""An accepted TCP stream. Closing it, whichever way, notifies the
	`onClose` callbacks exactly once."""

	IDS = itertools.count(1)

	__slots__ = ["id", "socket", "peer", "phase", "_onClose", "_lock"]

	def __init__(self, client: socket.socket, peer: Any = None) -> None:
		self.id: int = next(Connection.IDS)
		self.socket: socket.socket = client
		self.peer: Any = peer
		self.phase: ConnectionPhase = ConnectionPhase.Accepted
		self._onClose: list[Callable[["Connection"], Any]] = []
		self._lock = threading.Lock()

	@property
	def isClosed(self) -> bool:
		return self.phase is ConnectionPhase.Closed

	def onClose(self, callback: Callable[["Connection"], Any]) -> "Connection":
		self._onClose.append(callback)
		return self

	def close(self) -> bool:
		"""Closes the connection once the response has been sent."""
		return self._finish(False)

	def cancel(self) -> bool:
		"""Aborts the connection, without sending anything more."""
		return self._finish(True)

	def _finish(self, cancelled: bool) -> bool:
		with self._lock:
			if self.phase is ConnectionPhase.Closed:
				return False
			self.phase = ConnectionPhase.Closed
		logged(LogLevel.Debug) and debug(
			"Connection cancelled" if cancelled else "Connection closed",
			Connection=self.id,
		)
		try:
			self.socket.close()
		except OSError as e:
			exception(e, "Could not close connection")
		for callback in self._onClose:
			try:
				callback(self)
			except Exception as e:
				exception(e, "Connection close handler failed")
		return True

	def __str__(self) -> str:
		return f"Connection({self.id} {self.phase.name} {self.peer})"


class ConnectionRegistry:
	"""Tracks the connections in flight. Mutations are serialized, as they
	come from distinct connection tasks."""

	def __init__(self) -> None:
		self._lock = threading.Lock()
		self._connections: list[Connection] = []

	def add(self, connection: Connection) -> Connection:
		with self._lock:
			self._connections.append(connection)
		return connection

	def remove(self, connection: Connection) -> bool:
		with self._lock:
			if connection in self._connections:
				self._connections.remove(connection)
				return True
			else:
				return False

	def __len__(self) -> int:
		with self._lock:
			return len(self._connections)

	def __contains__(self, connection: Connection) -> bool:
		with self._lock:
			return connection in self._connections


# -----------------------------------------------------------------------------
#
# RESPONDER
#
# -----------------------------------------------------------------------------


class Responder:
	"""Writes a complete response on a connection and closes it."""

	def __init__(self, sink: StatusSink, timeout: float | None = TIMEOUT) -> None:
		self.sink: StatusSink = sink
		self.timeout: float | None = timeout or None

	async def respond(
		self,
		connection: Connection,
		status: int,
		contentType: str,
		body: str | bytes,
	) -> bool:
		return await self.send(
			connection, HTTPResponse.Create(status, body, contentType)
		)

	async def send(self, connection: Connection, response: HTTPResponse) -> bool:
		connection.phase = ConnectionPhase.Writing
		loop = asyncio.get_running_loop()
		try:
			# The body is only written once the head is fully out
			await asyncio.wait_for(
				loop.sock_sendall(connection.socket, response.head()),
				timeout=self.timeout,
			)
			await asyncio.wait_for(
				loop.sock_sendall(connection.socket, response.body),
				timeout=self.timeout,
			)
		except (OSError, TimeoutError, asyncio.TimeoutError) as e:
			self.sink.log(
				f"Send error: {e!r}",
				level=LogLevel.Warning,
				Connection=connection.id,
				Status=response.status,
			)
			connection.cancel()
			return False
		connection.close()
		return True


# -----------------------------------------------------------------------------
#
# CONNECTION HANDLER
#
# -----------------------------------------------------------------------------


class ConnectionHandler:
	"""Reads the request line off a connection, dispatches it and responds.
	Anything that isn't a `GET` request line is closed without a response."""

	def __init__(
		self,
		router: Router,
		fetcher: AssetFetcher,
		responder: Responder,
		registry: ConnectionRegistry,
		sink: StatusSink,
		*,
		readsize: int = READ_SIZE,
		timeout: float | None = TIMEOUT,
	) -> None:
		self.router: Router = router
		self.fetcher: AssetFetcher = fetcher
		self.responder: Responder = responder
		self.registry: ConnectionRegistry = registry
		self.sink: StatusSink = sink
		self.readsize: int = readsize
		self.timeout: float | None = timeout or None

	def track(self, connection: Connection) -> Connection:
		"""Registers the connection, which removes itself however it ends up
		being closed."""
		if not connection.isClosed and connection not in self.registry:
			self.registry.add(connection)
			connection.onClose(self.registry.remove)
		return connection

	async def handle(self, connection: Connection) -> None:
		self.track(connection)
		try:
			await self.process(connection)
		except Exception as e:
			exception(e)
			self.sink.log(
				f"Connection error: {e!r}",
				level=LogLevel.Error,
				Connection=connection.id,
			)
		finally:
			if not connection.isClosed:
				connection.cancel()

	async def process(self, connection: Connection) -> None:
		loop = asyncio.get_running_loop()
		connection.phase = ConnectionPhase.Reading
		try:
			# NOTE: There is a single read, the request line is expected to
			# arrive in one go.
			chunk: bytes = await asyncio.wait_for(
				loop.sock_recv(connection.socket, self.readsize),
				timeout=self.timeout,
			)
		except (OSError, TimeoutError, asyncio.TimeoutError) as e:
			self.sink.log(
				f"Receive error: {e!r}",
				level=LogLevel.Warning,
				Connection=connection.id,
			)
			connection.cancel()
			return
		line = parseRequestLine(chunk)
		if line is None or line.method != "GET":
			self.sink.log(
				"Unsupported request",
				level=LogLevel.Warning,
				Connection=connection.id,
				Method=line.method if line else None,
				Read=len(chunk),
			)
			connection.cancel()
			return
		self.sink.log(f"GET {line.target}", Connection=connection.id)
		connection.phase = ConnectionPhase.Dispatching
		outcome = self.router.resolve(line.target)
		if isinstance(outcome, FetchAsset):
			result = await self.fetcher.fetch(outcome.id)
			response = self.router.respondAsset(result)
		else:
			response = outcome
		await self.responder.send(connection, response)


# -----------------------------------------------------------------------------
#
# LISTENER
#
# -----------------------------------------------------------------------------


class Listener:
	"""Owns the listening socket and hands each accepted connection to the
	handler in its own task."""

	def __init__(
		self,
		handler: ConnectionHandler,
		sink: StatusSink,
		options: ServerOptions = OPTIONS,
	) -> None:
		self.handler: ConnectionHandler = handler
		self.sink: StatusSink = sink
		self.options: ServerOptions = options
		self.port: int | None = None
		self.isRunning: bool = False
		self.tasks: set[asyncio.Task[None]] = set()

	def start(self, port: int | None = None) -> "asyncio.Task[None]":
		"""Starts serving in the background, returning the task that does."""
		self.isRunning = True
		return asyncio.get_running_loop().create_task(
			self.serve(self.options.port if port is None else port)
		)

	def stop(self) -> None:
		if self.isRunning:
			self.sink.log("Server stopping…")
		self.isRunning = False

	def bind(self, port: int) -> socket.socket:
		server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		try:
			server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
			server.bind((self.options.host, port))
			# The argument is the backlog of connections that will be accepted
			# before they are refused.
			server.listen(self.options.backlog)
			# This is what we need to use it with asyncio
			server.setblocking(False)
		except OSError:
			server.close()
			raise
		return server

	def dispatch(self, client: socket.socket, peer: Any = None) -> "asyncio.Task[None]":
		"""Hands an accepted client to the handler in its own task."""
		# The connection is tracked before its task starts, as the task
		# may be cancelled before it runs.
		connection = self.handler.track(Connection(client, peer))
		self.sink.log("New connection received", Connection=connection.id)
		task = asyncio.get_running_loop().create_task(self.handler.handle(connection))
		self.tasks.add(task)
		task.add_done_callback(self.tasks.discard)
		task.add_done_callback(lambda _: connection.cancel())
		return task

	async def serve(self, port: int) -> None:
		self.isRunning = True
		self.sink.log(f"Attempting to start server on port {port}")
		try:
			server = self.bind(port)
		except OSError as e:
			self.isRunning = False
			self.sink.log(f"Error creating listener: {e}", level=LogLevel.Error)
			self.sink.setStatus(ServerStatus.ListenerError(str(e)))
			return
		self.port = server.getsockname()[1]
		self.sink.log(f"Server listening on port {self.port}", Host=self.options.host)
		self.sink.setStatus(ServerStatus.Running(self.port))
		loop = asyncio.get_running_loop()
		try:
			while self.isRunning:
				try:
					client, peer = await asyncio.wait_for(
						loop.sock_accept(server), timeout=self.options.polling or 1.0
					)
				except (TimeoutError, asyncio.TimeoutError):
					continue
				except OSError as e:
					if e.errno == errno.EMFILE:
						# Too many open files, we give connections some time
						# to close.
						await asyncio.sleep(0.1)
						continue
					self.sink.log(f"Listener failed: {e}", level=LogLevel.Error)
					self.sink.setStatus(ServerStatus.Failed(str(e)))
					break
				self.dispatch(client, peer)
		finally:
			self.isRunning = False
			server.close()
			for task in self.tasks:
				task.cancel()
			await asyncio.gather(*self.tasks, return_exceptions=True)


# -----------------------------------------------------------------------------
#
# BRIDGE
#
# -----------------------------------------------------------------------------


class Bridge:
	"""Puts the server together: asks the store for access, then brings
	the listener up."""

	def __init__(
		self,
		store: AssetStore,
		state: BridgeState | None = None,
		options: ServerOptions = OPTIONS,
		requestOptions: RequestOptions = RequestOptions(),
	) -> None:
		self.store: AssetStore = store
		self.state: BridgeState = BridgeState() if state is None else state
		self.options: ServerOptions = options
		self.registry: ConnectionRegistry = ConnectionRegistry()
		self.router: Router = Router(self.state)
		self.fetcher: AssetFetcher = AssetFetcher(store, self.state, requestOptions)
		self.responder: Responder = Responder(self.state, options.timeout)
		self.handler: ConnectionHandler = ConnectionHandler(
			self.router,
			self.fetcher,
			self.responder,
			self.registry,
			self.state,
			readsize=options.readsize,
			timeout=options.timeout,
		)
		self.listener: Listener = Listener(self.handler, self.state, options)

	async def start(self) -> "asyncio.Task[None] | None":
		"""Returns the listener task, or `None` when access was not granted."""
		self.state.setStatus(ServerStatus.AwaitingPermission())
		authorization = await self.store.requestAuthorization()
		self.state.log(f"Authorization status: {authorization.name}")
		if authorization.isGranted:
			return self.listener.start(self.options.port)
		else:
			self.state.log(
				"ERROR: Access to Photos denied/restricted. Please enable in System Settings.",
				level=LogLevel.Error,
			)
			self.state.setStatus(ServerStatus.PermissionDenied())
			return None

	def stop(self) -> None:
		self.listener.stop()

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		e = context.get("exception")
		if e:
			exception(e)

	async def serve(self) -> None:
		"""Main server coroutine, returns when the listener is done."""
		loop = asyncio.get_running_loop()
		# Registers handlers for signals and exception (so that we log them). Note
		# that we'll get a `set_wakeup_fd only works in main thread of the main interpreter`
		# when this is not run out of the main thread.
		if (
			self.options.stopSignals
			and threading.current_thread() is threading.main_thread()
		):
			loop.add_signal_handler(SIGINT, self.stop)
			loop.add_signal_handler(SIGTERM, self.stop)
		loop.set_exception_handler(self.onException)
		task = await self.start()
		if task:
			await task


def run(
	store: AssetStore,
	*,
	host: str = OPTIONS.host,
	port: int = OPTIONS.port,
	timeout: float | None = OPTIONS.timeout,
	readsize: int = OPTIONS.readsize,
	state: BridgeState | None = None,
) -> BridgeState:
	"""High level function to run the bridge until it stops."""
	options = OPTIONS._replace(
		host=host, port=port, timeout=timeout, readsize=readsize
	)
	bridge = Bridge(store, state, options)
	try:
		asyncio.run(bridge.serve())
	except KeyboardInterrupt:
		event("ManualShutdown")
	event("EOK")
	return bridge.state


# EOF
