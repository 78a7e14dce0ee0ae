"""Dispatch of requests to routers, directly or through a pool of worker threads."""

from __future__ import annotations

import queue
import threading
from typing import Any, Optional

from zinx import zlog
from zinx.config import get_global_config
from zinx.router import BaseRouter


class DuplicateRouterError(ValueError):
    """A router is already registered for this message id."""


class MsgHandle:
    """Maps message ids to routers and runs them, optionally on worker threads.

    Requests from one connection always land on the same worker, chosen by
    ``conn_id % worker_pool_size``.
    """

    def __init__(self, worker_pool_size: Optional[int] = None,
                 max_worker_task_len: Optional[int] = None) -> None:
        if worker_pool_size is None or max_worker_task_len is None:
            config = get_global_config()
            if worker_pool_size is None:
                worker_pool_size = config.worker_pool_size
            if max_worker_task_len is None:
                max_worker_task_len = config.max_worker_task_len
        self.apis: dict[int, BaseRouter] = {}
        self.worker_pool_size = worker_pool_size
        self.max_worker_task_len = max_worker_task_len
        self.task_queues: list[queue.Queue] = []
        self.workers: list[threading.Thread] = []

    def send_msg_to_task_queue(self, request: Any) -> None:
        """Queue a request for the worker that owns its connection."""
        if not self.task_queues:
            raise RuntimeError("worker pool is not started")
        worker_id = request.connection.conn_id % self.worker_pool_size
        self.task_queues[worker_id].put(request)

    def do_msg_handler(self, request: Any) -> None:
        """Run the router for the request's message id in the calling thread."""
        handler = self.apis.get(request.msg_id)
        if handler is None:
            zlog.info("api msgID = ", request.msg_id, " is not FOUND!")
            return
        handler.pre_handle(request)
        handler.handle(request)
        handler.post_handle(request)

    def add_router(self, msg_id: int, router: BaseRouter) -> None:
        """Bind a router to a message id; each id may be bound only once."""
        if msg_id in self.apis:
            raise DuplicateRouterError(f"repeated api , msgID = {msg_id}")
        self.apis[msg_id] = router
        zlog.info("Add api msgID = ", msg_id)

    def start_one_worker(self, worker_id: int, task_queue: queue.Queue) -> None:
        """Serve requests from task_queue until a None is taken from it."""
        zlog.info("Worker ID = ", worker_id, " is started.")
        while True:
            request = task_queue.get()
            if request is None:
                return
            try:
                self.do_msg_handler(request)
            except Exception as exc:  # noqa: BLE001 - one bad handler must not stop the worker
                zlog.error("worker ", worker_id, " handler error: ", exc)

    def start_worker_pool(self) -> None:
        """Create one bounded queue and one daemon thread per worker."""
        for worker_id in range(self.worker_pool_size):
            task_queue: queue.Queue = queue.Queue(maxsize=self.max_worker_task_len)
            self.task_queues.append(task_queue)
            worker = threading.Thread(
                target=self.start_one_worker,
                args=(worker_id, task_queue),
                name=f"zinx-worker-{worker_id}",
                daemon=True,
            )
            self.workers.append(worker)
            worker.start()