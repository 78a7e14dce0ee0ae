"""Area-of-interest grid: a rectangle split into cells that track the players inside."""

from __future__ import annotations

import threading

AOI_MIN_X = 85
AOI_MAX_X = 410
AOI_CNTS_X = 10
AOI_MIN_Y = 75
AOI_MAX_Y = 400
AOI_CNTS_Y = 20

# Neighbour offsets in the order they are reported: left column, middle, right column.
_NEIGHBOURS = ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1))


def _trunc_div(a: int, b: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(a) // abs(b)
    return quotient if (a >= 0) == (b >= 0) else -quotient


class Grid:
    """One cell of the map and the ids of the players standing in it."""

    def __init__(self, gid: int, min_x: int, max_x: int, min_y: int, max_y: int) -> None:
        self.gid = gid
        self.min_x = min_x
        self.max_x = max_x
        self.min_y = min_y
        self.max_y = max_y
        self._player_ids: set[int] = set()
        self._lock = threading.Lock()

    def add(self, player_id: int) -> None:
        with self._lock:
            self._player_ids.add(player_id)

    def remove(self, player_id: int) -> None:
        with self._lock:
            self._player_ids.discard(player_id)

    def player_ids(self) -> list[int]:
        """The ids currently in this cell."""
        with self._lock:
            return list(self._player_ids)

    def __str__(self) -> str:
        with self._lock:
            members = " ".join(f"{pid}:true" for pid in sorted(self._player_ids))
        return (f"GrID ID: {self.gid}, minX:{self.min_x}, maxX:{self.max_x}, "
                f"minY:{self.min_y}, maxY:{self.max_y}, playerIDs:map[{members}]")


class AOIManager:
    """A rectangular area divided into ``cnts_x`` by ``cnts_y`` cells.

    Cell ids run row by row: ``gid = gy * cnts_x + gx``.
    """

    def __init__(self, min_x: int, max_x: int, cnts_x: int,
                 min_y: int, max_y: int, cnts_y: int) -> None:
        self.min_x = min_x
        self.max_x = max_x
        self.cnts_x = cnts_x
        self.min_y = min_y
        self.max_y = max_y
        self.cnts_y = cnts_y
        self.grids: dict[int, Grid] = {}
        width, length = self.grid_width, self.grid_length
        for y in range(cnts_y):
            for x in range(cnts_x):
                gid = y * cnts_x + x
                self.grids[gid] = Grid(
                    gid,
                    min_x + x * width,
                    min_x + (x + 1) * width,
                    min_y + y * length,
                    min_y + (y + 1) * length,
                )

    @property
    def grid_width(self) -> int:
        """Width of one cell along x."""
        return _trunc_div(self.max_x - self.min_x, self.cnts_x)

    @property
    def grid_length(self) -> int:
        """Length of one cell along y."""
        return _trunc_div(self.max_y - self.min_y, self.cnts_y)

    def __str__(self) -> str:
        header = (f"AOIManagr:\nminX:{self.min_x}, maxX:{self.max_x}, cntsX:{self.cnts_x}, "
                  f"minY:{self.min_y}, maxY:{self.max_y}, cntsY:{self.cnts_y}\n"
                  f" GrIDs in AOI Manager:\n")
        return header + "".join(f"{grid}\n" for _, grid in sorted(self.grids.items()))

    def surround_grids_by_gid(self, gid: int) -> list[Grid]:
        """The cell itself followed by its in-bounds neighbours; empty for an unknown id."""
        center = self.grids.get(gid)
        if center is None:
            return []
        x, y = gid % self.cnts_x, gid // self.cnts_x
        neighbours = [
            self.grids[ny * self.cnts_x + nx]
            for dx, dy in _NEIGHBOURS
            for nx, ny in ((x + dx, y + dy),)
            if 0 <= nx < self.cnts_x and 0 <= ny < self.cnts_y
        ]
        return [center, *neighbours]

    def gid_by_pos(self, x: float, y: float) -> int:
        """The id of the cell containing the point (x, y)."""
        gx = _trunc_div(int(x) - self.min_x, self.grid_width)
        gy = _trunc_div(int(y) - self.min_y, self.grid_length)
        return gy * self.cnts_x + gx

    def pids_by_pos(self, x: float, y: float) -> list[int]:
        """Player ids in the cell at (x, y) and in its neighbours."""
        gid = self.gid_by_pos(x, y)
        return [pid for grid in self.surround_grids_by_gid(gid) for pid in grid.player_ids()]

    def pids_by_gid(self, gid: int) -> list[int]:
        """Player ids in one cell."""
        return self.grids[gid].player_ids()

    def remove_pid_from_grid(self, pid: int, gid: int) -> None:
        self.grids[gid].remove(pid)

    def add_pid_to_grid(self, pid: int, gid: int) -> None:
        self.grids[gid].add(pid)

    def add_to_grid_by_pos(self, pid: int, x: float, y: float) -> None:
        self.grids[self.gid_by_pos(x, y)].add(pid)

    def remove_from_grid_by_pos(self, pid: int, x: float, y: float) -> None:
        self.grids[self.gid_by_pos(x, y)].remove(pid)