"""Leveled logger with a configurable header and a process-wide default instance."""

from __future__ import annotations

import enum
import os
import sys
import threading
import traceback
from contextlib import suppress
from datetime import datetime
from typing import IO, Any, Optional

LOG_MAX_BUF = 1024 * 1024


class LogFlag(enum.IntFlag):
    """Bits selecting which fields appear in each log line's header."""

    DATE = 1
    TIME = 2
    MICROSECONDS = 4
    LONG_FILE = 8
    SHORT_FILE = 16
    LEVEL = 32
    STD_FLAG = DATE | TIME
    DEFAULT = LEVEL | SHORT_FILE | DATE | TIME


class LogLevel(enum.IntEnum):
    """Severity of a log record."""

    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    PANIC = 4
    FATAL = 5

    @property
    def label(self) -> str:
        return f"[{self.name}]"


class LogPanic(RuntimeError):
    """Raised after a panic-level record has been written."""


_TIME_FLAGS = LogFlag.DATE | LogFlag.TIME | LogFlag.MICROSECONDS
_CLOCK_FLAGS = LogFlag.TIME | LogFlag.MICROSECONDS
_FILE_FLAGS = LogFlag.SHORT_FILE | LogFlag.LONG_FILE


def _short_name(path: str) -> str:
    idx = max(path.rfind("/"), path.rfind(os.sep))
    return path[idx + 1:] if idx > 0 else path


def _sprint(args: tuple[Any, ...]) -> str:
    """Join operands, adding a space only between two non-string operands."""
    pieces: list[str] = []
    prev_is_str = True
    for position, arg in enumerate(args):
        is_str = isinstance(arg, str)
        if position and not is_str and not prev_is_str:
            pieces.append(" ")
        pieces.append(str(arg))
        prev_is_str = is_str
    return "".join(pieces)


def _sprintln(args: tuple[Any, ...]) -> str:
    return " ".join(str(arg) for arg in args) + "\n"


def _sprintf(fmt: str, args: tuple[Any, ...]) -> str:
    if not args:
        return fmt
    return fmt.replace("%v", "%s") % args


def _all_stacks() -> str:
    frames = sys._current_frames()
    dumps = []
    for thread in threading.enumerate():
        frame = frames.get(thread.ident) if thread.ident is not None else None
        if frame is None:
            continue
        header = f"thread {thread.name} ({thread.ident}):\n"
        dumps.append(header + "".join(traceback.format_stack(frame)))
    return "\n".join(dumps)[:LOG_MAX_BUF]


class ZinxLogger:
    """A thread-safe logger writing formatted lines to a stream or a file.

    When ``out`` is None the logger writes to whatever ``sys.stderr`` is at
    the moment of writing.
    """

    def __init__(self, out: Optional[IO[str]] = None, prefix: str = "",
                 flag: int = LogFlag.DEFAULT) -> None:
        self._lock = threading.Lock()
        self._out = out
        self._prefix = prefix
        self._flag = int(flag)
        self._file: Optional[IO[str]] = None
        self._debug_closed = False
        self._call_depth = 2

    def __enter__(self) -> "ZinxLogger":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def flags(self) -> int:
        with self._lock:
            return self._flag

    def _format_header(self, now: datetime, file: str, line: int, level: int) -> str:
        parts: list[str] = []
        if self._prefix:
            parts.append(f"<{self._prefix}>")
        flag = self._flag
        if flag & _TIME_FLAGS:
            if flag & LogFlag.DATE:
                parts.append(f"{now.year:04d}/{now.month:02d}/{now.day:02d} ")
            if flag & _CLOCK_FLAGS:
                clock = f"{now.hour:02d}:{now.minute:02d}:{now.second:02d}"
                if flag & LogFlag.MICROSECONDS:
                    clock += f".{now.microsecond:06d}"
                parts.append(clock + " ")
            if flag & LogFlag.LEVEL:
                parts.append(LogLevel(level).label)
            if flag & _FILE_FLAGS:
                if flag & LogFlag.SHORT_FILE:
                    file = _short_name(file)
                parts.append(f"{file}:{line}: ")
        return "".join(parts)

    def output(self, level: int, s: str) -> None:
        """Write one record; the caller's file and line are taken from the stack."""
        now = datetime.now()
        file, line = "", 0
        if self.flags & _FILE_FLAGS:
            try:
                frame = sys._getframe(self._call_depth)
                file, line = frame.f_code.co_filename, frame.f_lineno
            except ValueError:
                file, line = "unknown-file", 0
        with self._lock:
            text = self._format_header(now, file, line, level) + s
            if s and not s.endswith("\n"):
                text += "\n"
            out = self._out if self._out is not None else sys.stderr
            out.write(text)
            flush = getattr(out, "flush", None)
            if flush is not None:
                flush()

    def debug(self, *args: Any) -> None:
        if self._debug_closed:
            return
        with suppress(OSError):
            self.output(LogLevel.DEBUG, _sprintln(args))

    def debugf(self, format: str, *args: Any) -> None:
        if self._debug_closed:
            return
        with suppress(OSError):
            self.output(LogLevel.DEBUG, _sprintf(format, args))

    def info(self, *args: Any) -> None:
        with suppress(OSError):
            self.output(LogLevel.INFO, _sprintln(args))

    def infof(self, format: str, *args: Any) -> None:
        with suppress(OSError):
            self.output(LogLevel.INFO, _sprintf(format, args))

    def warn(self, *args: Any) -> None:
        with suppress(OSError):
            self.output(LogLevel.WARN, _sprintln(args))

    def warnf(self, format: str, *args: Any) -> None:
        with suppress(OSError):
            self.output(LogLevel.WARN, _sprintf(format, args))

    def error(self, *args: Any) -> None:
        with suppress(OSError):
            self.output(LogLevel.ERROR, _sprintln(args))

    def errorf(self, format: str, *args: Any) -> None:
        with suppress(OSError):
            self.output(LogLevel.ERROR, _sprintf(format, args))

    def fatal(self, *args: Any) -> None:
        """Log at fatal level, then exit the process with status 1."""
        with suppress(OSError):
            self.output(LogLevel.FATAL, _sprintln(args))
        sys.exit(1)

    def fatalf(self, format: str, *args: Any) -> None:
        """Log at fatal level, then exit the process with status 1."""
        with suppress(OSError):
            self.output(LogLevel.FATAL, _sprintf(format, args))
        sys.exit(1)

    def panic(self, *args: Any) -> None:
        """Log at panic level, then raise LogPanic with the message."""
        message = _sprintln(args)
        with suppress(OSError):
            self.output(LogLevel.PANIC, message)
        raise LogPanic(message)

    def panicf(self, format: str, *args: Any) -> None:
        """Log at panic level, then raise LogPanic with the message."""
        message = _sprintf(format, args)
        with suppress(OSError):
            self.output(LogLevel.PANIC, message)
        raise LogPanic(message)

    def stack(self, *args: Any) -> None:
        """Log the message followed by the stacks of all running threads."""
        message = _sprint(args) + "\n" + _all_stacks() + "\n"
        with suppress(OSError):
            self.output(LogLevel.ERROR, message)

    def reset_flags(self, flag: int) -> None:
        with self._lock:
            self._flag = int(flag)

    def add_flag(self, flag: int) -> None:
        with self._lock:
            self._flag |= int(flag)

    def set_prefix(self, prefix: str) -> None:
        with self._lock:
            self._prefix = prefix

    def set_log_file(self, file_dir: str, file_name: str) -> None:
        """Send output to file_dir/file_name, creating the directory if needed."""
        with suppress(OSError):
            os.makedirs(file_dir, mode=0o775, exist_ok=True)
        log_file = open(os.path.join(file_dir, file_name), "a", encoding="utf-8")
        with self._lock:
            self._close_file()
            self._file = log_file
            self._out = log_file

    def _close_file(self) -> None:
        if self._file is not None:
            with suppress(OSError):
                self._file.close()
            self._file = None
            self._out = None

    def close(self) -> None:
        """Close the bound log file, if any, and fall back to stderr."""
        with self._lock:
            self._close_file()

    def close_debug(self) -> None:
        self._debug_closed = True

    def open_debug(self) -> None:
        self._debug_closed = False


std_zinx_log = ZinxLogger(None, "", LogFlag.DEFAULT)
# The module-level wrappers add one frame between the caller and output().
std_zinx_log._call_depth = 3


def flags() -> int:
    return std_zinx_log.flags


def reset_flags(flag: int) -> None:
    std_zinx_log.reset_flags(flag)


def add_flag(flag: int) -> None:
    std_zinx_log.add_flag(flag)


def set_prefix(prefix: str) -> None:
    std_zinx_log.set_prefix(prefix)


def set_log_file(file_dir: str, file_name: str) -> None:
    std_zinx_log.set_log_file(file_dir, file_name)


def close_debug() -> None:
    std_zinx_log.close_debug()


def open_debug() -> None:
    std_zinx_log.open_debug()


def debug(*args: Any) -> None:
    std_zinx_log.debug(*args)


def debugf(format: str, *args: Any) -> None:
    std_zinx_log.debugf(format, *args)


def info(*args: Any) -> None:
    std_zinx_log.info(*args)


def infof(format: str, *args: Any) -> None:
    std_zinx_log.infof(format, *args)


def warn(*args: Any) -> None:
    std_zinx_log.warn(*args)


def warnf(format: str, *args: Any) -> None:
    std_zinx_log.warnf(format, *args)


def error(*args: Any) -> None:
    std_zinx_log.error(*args)


def errorf(format: str, *args: Any) -> None:
    std_zinx_log.errorf(format, *args)


def fatal(*args: Any) -> None:
    std_zinx_log.fatal(*args)


def fatalf(format: str, *args: Any) -> None:
    std_zinx_log.fatalf(format, *args)


def panic(*args: Any) -> None:
    std_zinx_log.panic(*args)


def panicf(format: str, *args: Any) -> None:
    std_zinx_log.panicf(format, *args)


def stack(*args: Any) -> None:
    std_zinx_log.stack(*args)