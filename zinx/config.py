"""Framework-wide settings: defaults, command-line parsing and JSON config loading."""

from __future__ import annotations

import argparse
import json
import os
import sys
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from zinx import zlog

_UINT32_LIMIT = 2 ** 32


class FlagNames:
    """Hands out unique flag names, suffixing a counter on repeated requests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: dict[str, int] = {}

    def claim(self, expect: str) -> str:
        """Return ``expect`` the first time, then ``expect1``, ``expect2``, ..."""
        with self._lock:
            count = self._counts.get(expect)
            if count is None:
                self._counts[expect] = 1
                return expect
            self._counts[expect] = count + 1
            return f"{expect}{count}"


@dataclass
class Args:
    """What the command line told us about the running program."""

    exe_abs_dir: str
    exe_name: str
    config_file: str


def _default_config_path() -> str:
    return os.path.join(os.getcwd(), "conf", "zinx.json")


def _default_log_dir() -> str:
    return os.path.join(os.getcwd(), "log")


# JSON key (as written in zinx.json) -> (attribute, type, unsigned 32-bit?)
_JSON_FIELDS: dict[str, tuple[str, type, bool]] = {
    "Host": ("host", str, False),
    "TCPPort": ("tcp_port", int, False),
    "Name": ("name", str, False),
    "Version": ("version", str, False),
    "MaxPacketSize": ("max_packet_size", int, True),
    "MaxConn": ("max_conn", int, False),
    "WorkerPoolSize": ("worker_pool_size", int, True),
    "MaxWorkerTaskLen": ("max_worker_task_len", int, True),
    "MaxMsgChanLen": ("max_msg_chan_len", int, True),
    "ConfFilePath": ("conf_file_path", str, False),
    "LogDir": ("log_dir", str, False),
    "LogFile": ("log_file", str, False),
    "LogDebugClose": ("log_debug_close", bool, False),
}

_FIELD_LOOKUP: dict[str, tuple[str, type, bool]] = {}
for _key, _spec in _JSON_FIELDS.items():
    _FIELD_LOOKUP[_key.lower()] = _spec
    _FIELD_LOOKUP[_spec[0]] = _spec


def _checked(key: str, value: Any, kind: type, unsigned: bool) -> Any:
    if kind is bool:
        if not isinstance(value, bool):
            raise TypeError(f"config key {key!r} must be a boolean, got {value!r}")
    elif kind is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"config key {key!r} must be an integer, got {value!r}")
        if unsigned and not 0 <= value < _UINT32_LIMIT:
            raise ValueError(f"config key {key!r} is out of range: {value}")
    elif not isinstance(value, str):
        raise TypeError(f"config key {key!r} must be a string, got {value!r}")
    return value


@dataclass
class GlobalConfig:
    """Settings shared by every part of the framework."""

    tcp_server: Any = field(default=None, repr=False, compare=False)
    host: str = "0.0.0.0"
    tcp_port: int = 8999
    name: str = "ZinxServerApp"
    version: str = "V1.0"
    max_packet_size: int = 4096
    max_conn: int = 12000
    worker_pool_size: int = 10
    max_worker_task_len: int = 1024
    max_msg_chan_len: int = 1024
    conf_file_path: str = field(default_factory=_default_config_path)
    log_dir: str = field(default_factory=_default_log_dir)
    log_file: str = ""
    log_debug_close: bool = False

    def update_from_dict(self, data: Mapping[str, Any]) -> None:
        """Overlay values from a parsed zinx.json object; key case is ignored."""
        if not isinstance(data, Mapping):
            raise TypeError("configuration must be a JSON object")
        for key, value in data.items():
            spec = _FIELD_LOOKUP.get(key.lower()) or _FIELD_LOOKUP.get(key)
            if spec is None or value is None:
                continue
            attr, kind, unsigned = spec
            setattr(self, attr, _checked(key, value, kind, unsigned))

    def reload(self) -> None:
        """Load conf_file_path if it exists and apply its logging settings."""
        try:
            if not path_exists(self.conf_file_path):
                return
        except OSError:
            return
        with open(self.conf_file_path, encoding="utf-8") as handle:
            data = json.load(handle)
        self.update_from_dict(data)
        if self.log_file:
            zlog.set_log_file(self.log_dir, self.log_file)
        if self.log_debug_close:
            zlog.close_debug()


def path_exists(path: str) -> bool:
    """True if the path exists, False if it does not; other errors are raised."""
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    return True


def parse_args(argv: Optional[list[str]] = None,
               default_config: Optional[str] = None) -> Args:
    """Read ``-c <config file>`` from argv; relative paths are made absolute."""
    cwd = os.getcwd()
    if default_config is None:
        default_config = _default_config_path()
    names = FlagNames()
    parser = argparse.ArgumentParser(
        prog=os.path.basename(sys.argv[0]) if sys.argv else None)
    parser.add_argument(
        "-" + names.claim("c"),
        dest="config_file",
        default=default_config,
        help="configuration file; defaults to <exeDir>/conf/zinx.json",
    )
    namespace, _ = parser.parse_known_args(sys.argv[1:] if argv is None else argv)
    config_file = namespace.config_file
    if not os.path.isabs(config_file):
        config_file = os.path.join(cwd, config_file)
    exe_name = os.path.basename(sys.argv[0]) if sys.argv else ""
    return Args(exe_abs_dir=cwd, exe_name=exe_name, config_file=config_file)


def load_config(argv: Optional[list[str]] = None) -> GlobalConfig:
    """Build a config from defaults, the command line and the config file."""
    args = parse_args(argv)
    config = GlobalConfig(conf_file_path=args.config_file)
    config.reload()
    return config


_global_lock = threading.Lock()
_global_config: Optional[GlobalConfig] = None


def get_global_config() -> GlobalConfig:
    """The process-wide config, loaded from the command line on first use."""
    global _global_config
    with _global_lock:
        if _global_config is None:
            _global_config = load_config(None)
        return _global_config


def set_global_config(config: Optional[GlobalConfig]) -> None:
    """Replace the process-wide config; None makes the next access reload it."""
    global _global_config
    with _global_lock:
        _global_config = config