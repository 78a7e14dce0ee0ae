# zinx

A small TCP server framework built on the standard library. It gives you:

- a wire format of length-prefixed messages (`zinx.datapack`, `zinx.message`);
- routing of messages by ID to router objects with pre/handle/post hooks
  (`zinx.router`, `zinx.msghandler`);
- a server that accepts connections, tracks them, caps their number and
  dispatches requests to a pool of worker threads (`zinx.server`,
  `zinx.connection`, `zinx.connmanager`);
- JSON configuration with a `-c` command-line flag (`zinx.config`);
- a levelled logger with configurable headers (`zinx.zlog`);
- delayed calls and hierarchical timing wheels (`zinx.timer`, `zinx.timewheel`);
- an area-of-interest grid for game maps (`zinx.aoi`);
- a demo server and a demo client (`zinx.demo_server`, `zinx.demo_client`).

It has no dependencies outside the standard library and needs Python 3.10 or later.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Wire format

Every message is an 8-byte header followed by the payload. The header holds
the payload length and the message ID, both unsigned 32-bit little-endian
integers, in that order.

```python
from zinx.datapack import DataPack
from zinx.message import new_msg_package

packet = DataPack(max_packet_size=4096)
frame = packet.pack(new_msg_package(1, b"hello"))
# frame == b"\x05\x00\x00\x00\x01\x00\x00\x00hello"

head = packet.unpack(frame[:8])   # Message(msg_id=1, data=b"", data_len=5)
```

`unpack` reads only the header; the caller reads `data_len` more bytes for the
payload. It raises `PacketTooLargeError` when the announced length exceeds the
maximum packet size (0 disables the check; `None` uses the global config), and
`ValueError` when given fewer than 8 bytes. Other framings can be written by
subclassing `Packet` and implementing `head_len`, `pack` and `unpack`.

## Writing a server

Subclass `BaseRouter` and override any of `pre_handle`, `handle` and
`post_handle`; each receives a `Request`, which carries `connection`, `msg`,
and the shortcuts `data` and `msg_id`. Register routers by message ID;
registering the same ID twice raises `DuplicateRouterError`. A message whose
ID has no router is logged and dropped.

```python
from zinx.config import get_global_config
from zinx.router import BaseRouter
from zinx.server import Server


class PingRouter(BaseRouter):
    def handle(self, request):
        request.connection.send_buff_msg(0, b"pong")


server = Server(config=get_global_config())
server.on_conn_start = lambda conn: conn.set_property("greeted", True)
server.add_router(0, PingRouter())
server.serve()
```

`start()` binds an IPv4 listener and accepts in the background; `stop()`
stops every connection, closes the listener and releases the workers;
`serve()` starts the server and blocks until `stop()` or Ctrl-C. The server
is also a context manager that starts on entry and stops on exit, and its
`address` property gives the bound `(host, port)`. Connections beyond
`max_conn` are closed as soon as they are accepted.

Options are passed positionally: `Server(with_packet(my_packet), config=...)`
replaces the default `DataPack` framing.

The `on_conn_start` and `on_conn_stop` attributes hold hooks called with the
connection when it starts and when it is torn down.

Each `Connection` has:

- `send_msg(msg_id, data)`: frame and write straight to the socket;
- `send_buff_msg(msg_id, data)`: frame and queue for the writer thread,
  raising `SendTimeoutError` if the queue stays full for 5 ms;
- `set_property`, `get_property` (raising `PropertyNotFoundError`) and
  `remove_property` for per-connection data;
- `stop()`, `remote_addr()`, `conn_id`, and a `closed` flag.

Sending on a closed connection raises `ConnectionClosedError`.

Requests from one connection always go to the same worker
(`conn_id % worker_pool_size`). With a worker pool size of 0, each request is
handled on a new thread instead. `ConnManager` keeps the live connections;
`get` raises `ConnectionNotFoundError` for an unknown ID.

## Configuration

`GlobalConfig` defaults: name `ZinxServerApp`, version `V1.0`, host
`0.0.0.0`, port `8999`, at most 12000 connections, packets up to 4096 bytes,
10 workers with queues of 1024 requests, a send buffer of 1024 messages, and
logs on standard error.

`load_config(argv)` reads `-c PATH` from the arguments (default
`conf/zinx.json` under the working directory; relative paths are resolved
against the working directory) and, if that file exists, overlays its JSON
object. Keys are matched case-insensitively: `Host`, `TCPPort`, `Name`,
`Version`, `MaxPacketSize`, `MaxConn`, `WorkerPoolSize`, `MaxWorkerTaskLen`,
`MaxMsgChanLen`, `ConfFilePath`, `LogDir`, `LogFile`, `LogDebugClose` (the
attribute names such as `tcp_port` are accepted too). Values of the wrong type
raise `TypeError`. When `LogFile` is set, the default logger writes to
`LogDir/LogFile`; `LogDebugClose` silences debug records.

`get_global_config()` returns the shared config, loading it from the process's
command line on first use; `set_global_config(config)` replaces it (`None`
makes the next access load it again).

```json
{"Name": "MyServer", "TCPPort": 7777, "WorkerPoolSize": 4}
```

## Logging

```python
from zinx import zlog

zlog.info("server ready")
zlog.set_prefix("MODULE")
zlog.set_log_file("./log", "server.log")
zlog.close_debug()          # silence debug output
```

Header fields are chosen with `LogFlag` bits (`DATE`, `TIME`,
`MICROSECONDS`, `LONG_FILE`, `SHORT_FILE`, `LEVEL`) through `reset_flags` and
`add_flag`; the default is date, time, level and short file name. Each level
has a plain form (`info("a", 1)`) and a `%`-format form (`infof("a=%d", 1)`).
`stack` logs the message with the stacks of all running threads. `panic` logs
and then raises `LogPanic`; `fatal` logs and exits the process with status 1.
A standalone `ZinxLogger(out, prefix, flag)` writes to any text stream and
can be used as a context manager that closes its log file on exit.

## Timers

```python
from zinx.timer import DelayFunc, new_timer_after

DelayFunc(print, ["hello", "zinx!"]).call()
new_timer_after(DelayFunc(print, ["later"]), 2).run()
```

`DelayFunc.call` logs any exception raised by the function instead of
propagating it. `new_timer_after` (seconds or a `timedelta`) and
`new_timer_at` (Unix nanoseconds) build a `Timer` whose `run()` waits on a
background thread and then calls.

For many timers, use a `TimerScheduler`, which chains hour, minute and second
`TimeWheel`s turning on their own threads. `create_timer_after` and
`create_timer_at` return a timer ID that `cancel_timer` accepts. After
`start()`, due functions are put on the scheduler's `triggers` queue for you
to call; `new_auto_exec_timer_scheduler()` returns a started scheduler that
calls each due function on a new thread. `stop()` halts the wheels and the
scheduling thread.

## Area of interest

```python
from zinx.aoi import AOIManager

world = AOIManager(0, 250, 5, 0, 250, 5)
world.add_to_grid_by_pos(1, 10.0, 10.0)
world.pids_by_pos(10.0, 10.0)        # [1]
len(world.surround_grids_by_gid(0))  # 4: the corner cell and its neighbours
```

Cell IDs run row by row (`gid = gy * cnts_x + gx`); `surround_grids_by_gid`
returns the cell itself followed by its in-bounds neighbours, or an empty list
for an unknown ID.

## Demo programs

Start the demo server, which greets each new connection with message 2,
answers message 0 with a ping reply and message 1 with a greeting (`-c PATH`
selects a config file):

```
zinx-demo-server
```

In another terminal, run the demo client, which sends a ping to
`127.0.0.1:8999` every second and prints the replies (`--host`, `--port`,
`--count` and `--interval` change that):

```
zinx-demo-client
```

## What it does not do

The package provides the area-of-interest grid but no game world on top of
it: there is no player management, no movement or chat broadcasting, and no
message encoding beyond raw bytes. The server listens on IPv4 only and has no
TLS.