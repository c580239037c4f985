import threading
import time
from collections import deque
from enum import Enum
from typing import Callable, NamedTuple, Protocol

from .config import LOG_CAPACITY
from .utils.logging import LogLevel, TValue, exception, log, warning

# -----------------------------------------------------------------------------
#
# STATUS
#
# -----------------------------------------------------------------------------


class ServerState(Enum):
	Initializing = 0
	AwaitingPermission = 1
	PermissionDenied = 2
	ListenerError = 3
	Running = 4
	Failed = 5


TERMINAL_STATES: frozenset[ServerState] = frozenset(
	(ServerState.PermissionDenied, ServerState.ListenerError, ServerState.Failed)
)

# Which states may follow a given state. Terminal states have no successors.
TRANSITIONS: dict[ServerState, frozenset[ServerState]] = {
	ServerState.Initializing: frozenset(
		(
			ServerState.AwaitingPermission,
			ServerState.PermissionDenied,
			ServerState.ListenerError,
			ServerState.Running,
			ServerState.Failed,
		)
	),
	ServerState.AwaitingPermission: frozenset(
		(
			ServerState.PermissionDenied,
			ServerState.ListenerError,
			ServerState.Running,
			ServerState.Failed,
		)
	),
	ServerState.Running: frozenset((ServerState.Failed,)),
}


class ServerStatus(NamedTuple):
	"""The lifecycle status of the bridge server, as shown to the user."""

	state: ServerState
	message: str | None = None
	port: int | None = None

	@staticmethod
	def Initializing() -> "ServerStatus":
		return ServerStatus(ServerState.Initializing)

	@staticmethod
	def AwaitingPermission() -> "ServerStatus":
		return ServerStatus(ServerState.AwaitingPermission)

	@staticmethod
	def PermissionDenied() -> "ServerStatus":
		return ServerStatus(ServerState.PermissionDenied)

	@staticmethod
	def ListenerError(message: str) -> "ServerStatus":
		return ServerStatus(ServerState.ListenerError, message=message)

	@staticmethod
	def Running(port: int) -> "ServerStatus":
		return ServerStatus(ServerState.Running, port=port)

	@staticmethod
	def Failed(message: str) -> "ServerStatus":
		return ServerStatus(ServerState.Failed, message=message)

	@property
	def isTerminal(self) -> bool:
		return self.state in TERMINAL_STATES

	def canBecome(self, status: "ServerStatus") -> bool:
		return status.state in TRANSITIONS.get(self.state, ())

	@property
	def label(self) -> str:
		match self.state:
			case ServerState.Initializing:
				return "Initializing..."
			case ServerState.AwaitingPermission:
				return "Awaiting Permission"
			case ServerState.PermissionDenied:
				return "Permission Denied"
			case ServerState.ListenerError:
				return f"Listener Error: {self.message}"
			case ServerState.Running:
				return f"Running on :{self.port}"
			case _:
				return f"Failed: {self.message}"

	def __str__(self) -> str:
		return self.label


# -----------------------------------------------------------------------------
#
# LOG
#
# -----------------------------------------------------------------------------


class LogEvent(NamedTuple):
	timestamp: float
	message: str

	def __str__(self) -> str:
		return f"[{time.strftime('%H:%M:%S', time.localtime(self.timestamp))}] {self.message}"


class StatusSnapshot(NamedTuple):
	status: ServerStatus
	logs: tuple[LogEvent, ...]


TStatusListener = Callable[[ServerStatus | None, LogEvent | None], None]


class StatusSink(Protocol):
	"""What the server core needs from whatever presents its status."""

	def setStatus(self, status: ServerStatus) -> bool: ...

	def log(
		self, message: str, *, level: LogLevel = LogLevel.Info, **context: TValue
	) -> LogEvent: ...


# -----------------------------------------------------------------------------
#
# STATE
#
# -----------------------------------------------------------------------------


class BridgeState:
	"""Process-wide status and bounded log of the bridge. Written from the
	acceptance loop and from connection tasks, read by whatever renders it
	(possibly from another thread), so every access goes through a lock."""

	def __init__(self, capacity: int = LOG_CAPACITY) -> None:
		self.capacity: int = capacity
		self._lock = threading.Lock()
		self._status: ServerStatus = ServerStatus.Initializing()
		self._logs: deque[LogEvent] = deque(maxlen=capacity)
		self._listeners: list[TStatusListener] = []
		self.log("App Launched.")

	@property
	def status(self) -> ServerStatus:
		with self._lock:
			return self._status

	@property
	def logs(self) -> tuple[LogEvent, ...]:
		with self._lock:
			return tuple(self._logs)

	def snapshot(self) -> StatusSnapshot:
		with self._lock:
			return StatusSnapshot(self._status, tuple(self._logs))

	def setStatus(self, status: ServerStatus) -> bool:
		"""Transitions to the given status, returning `False` (and leaving
		the status untouched) when the transition is not allowed."""
		with self._lock:
			current = self._status
			allowed = current.canBecome(status)
			if allowed:
				self._status = status
		if not allowed:
			warning(
				"Ignored status transition",
				From=current.state.name,
				To=status.state.name,
			)
			return False
		self._notify(status, None)
		return True

	def log(
		self, message: str, *, level: LogLevel = LogLevel.Info, **context: TValue
	) -> LogEvent:
		entry = log(message, level, **context)
		item = LogEvent(entry.time, message)
		with self._lock:
			# The deque is bounded, the oldest event is evicted first
			self._logs.append(item)
		self._notify(None, item)
		return item

	def subscribe(self, listener: TStatusListener) -> Callable[[], None]:
		"""Registers a listener notified of every status change (as
		`(status, None)`) and every log event (as `(None, event)`). Returns
		a function that unsubscribes it."""
		with self._lock:
			self._listeners.append(listener)

		def unsubscribe() -> None:
			with self._lock:
				if listener in self._listeners:
					self._listeners.remove(listener)

		return unsubscribe

	def _notify(self, status: ServerStatus | None, event: LogEvent | None) -> None:
		with self._lock:
			listeners = tuple(self._listeners)
		for listener in listeners:
			try:
				listener(status, event)
			except Exception as e:
				exception(e, "Status listener failed")


# EOF
