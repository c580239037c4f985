import os
import sys
import time
from contextvars import ContextVar
from enum import Enum
from typing import Any, NamedTuple, TypeAlias

from ..config import LOG_LEVEL

ERR = sys.stderr

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
FORCE_COLOR: bool = "FORCE_COLOR" in os.environ
COLOR: bool = FORCE_COLOR or NO_COLOR is False

BOLD: str = "\033[1m" if COLOR else ""
RESET: str = "\033[0m" if COLOR else ""

TValue: TypeAlias = bool | int | float | str | bytes | None

LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="photosbridge")


class LogType(Enum):
	Message = 0  # A general information message
	Event = 20  # An event


class LogLevel(Enum):
	Debug = 0
	Info = 10
	Warning = 30  # A Warning
	Error = 40  # A managed error
	Exception = 50  # An un-managed error


LOG_LEVEL_COLOR = {
	LogLevel.Debug: 31,
	LogLevel.Info: 75,
	LogLevel.Warning: 202,
	LogLevel.Error: 160,
	LogLevel.Exception: 124,
}


def asLevel(name: str, default: LogLevel = LogLevel.Info) -> LogLevel:
	"""Returns the level with the given (case insensitive) name."""
	for level in LogLevel:
		if level.name.lower() == name.strip().lower():
			return level
	return default


THRESHOLD: LogLevel = asLevel(LOG_LEVEL)


class LogEntry(NamedTuple):
	origin: str
	time: float
	type: LogType = LogType.Message
	level: LogLevel = LogLevel.Info
	message: str | None = None
	name: str | None = None
	value: Any = None
	context: dict[str, TValue] | None = None
	icon: str | None = None


def color(code: int, bold: bool = False) -> str:
	return f"\033[{'1' if bold else '0'};38;5;{code}m" if COLOR else ""


def formatData(value: Any) -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, dict):
		return " ".join(f"{BOLD}{k}{RESET}={formatData(v)}" for k, v in value.items())
	elif isinstance(value, list) or isinstance(value, tuple):
		return ",".join(formatData(v) for v in value)
	elif isinstance(value, str):
		return repr(value) if " " in value else value
	elif isinstance(value, bool):
		return "✓" if value else "✗"
	elif isinstance(value, float):
		return f"{value:0.2f}"
	else:
		return str(value)


def send(entry: LogEntry) -> LogEntry:
	if entry.level.value < THRESHOLD.value:
		return entry
	icon: str = f" {entry.icon}" if entry.icon else ""
	clr: str = color(LOG_LEVEL_COLOR[entry.level])
	if entry.type == LogType.Event:
		ERR.write(
			f"{clr}{BOLD}[{entry.origin}] {entry.name}{RESET} {formatData(entry.value)} {formatData(entry.context)}{RESET}\n"
		)
	else:
		ERR.write(
			f"{clr}{BOLD}[{entry.origin}]{RESET}{icon} {entry.message} {formatData(entry.context)}{RESET}\n"
		)
	ERR.flush()
	return entry


def entry(
	*,
	origin: str | None = None,
	at: float | None = None,
	type: LogType = LogType.Message,
	level: LogLevel = LogLevel.Info,
	message: str | None = None,
	name: str | None = None,
	value: Any = None,
	context: dict[str, TValue],
	icon: str | None = None,
) -> LogEntry:
	return LogEntry(
		origin=origin or LogOrigin.get(),
		time=time.time() if at is None else at,
		type=type,
		level=level,
		message=message,
		name=name,
		value=value,
		context=context,
		icon=icon,
	)


def log(
	message: str,
	level: LogLevel = LogLevel.Info,
	*,
	origin: str | None = None,
	at: float | None = None,
	icon: str | None = None,
	**context: TValue,
) -> LogEntry:
	return send(
		entry(
			message=message,
			level=level,
			origin=origin,
			at=at,
			context=context,
			icon=icon,
		)
	)


def debug(
	message: str,
	*,
	origin: str | None = None,
	at: float | None = None,
	icon: str | None = None,
	**context: TValue,
) -> LogEntry:
	return log(message, LogLevel.Debug, origin=origin, at=at, icon=icon, **context)


def info(
	message: str,
	*,
	origin: str | None = None,
	at: float | None = None,
	icon: str | None = None,
	**context: TValue,
) -> LogEntry:
	return log(message, LogLevel.Info, origin=origin, at=at, icon=icon, **context)


def warning(
	message: str,
	*,
	origin: str | None = None,
	at: float | None = None,
	icon: str | None = None,
	**context: TValue,
) -> LogEntry:
	return log(message, LogLevel.Warning, origin=origin, at=at, icon=icon, **context)


def event(
	event: str,
	value: Any = None,
	*,
	origin: str | None = None,
	at: float | None = None,
	**context: TValue,
) -> LogEntry:
	return send(
		entry(
			name=event,
			value=value,
			type=LogType.Event,
			origin=origin,
			at=at,
			context=context,
		)
	)


def exception(
	exception: BaseException,
	message: str | None = None,
) -> BaseException:
	try:
		stream = ERR
		stream.write(
			f"!!! EXCP {f'{message}: [{exception.__class__.__name__}] {exception}' if message else f'[{exception.__class__.__name__}] {exception}'}\n"
		)
		tb = exception.__traceback__
		while tb:
			code = tb.tb_frame.f_code
			stream.write(
				f"... in {code.co_name:15s} at {tb.tb_lineno:4d} in {code.co_filename}\n",
			)
			tb = tb.tb_next
		stream.flush()
	except Exception:  # nosec: B110
		# Swallow all exceptions so that this function can be called from an exception
		# handler safely, such as in the implementation of logging/logging sinks.
		pass

	# Return the exception so that this function can be called like:
	#   raise exception(e)
	return exception


def logged(level: LogLevel) -> bool:
	"""Tells if the given level is currently output. This is used to guard
	against building the whole entry when not necessary."""
	return level.value >= THRESHOLD.value


# EOF
