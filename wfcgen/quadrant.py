# wfcgen/quadrant.py
# WO-11: Background generation + non-blocking obstacle channel

"""
Contract (WO-11):
start_quadrant(config) runs a full generation on a worker thread and streams
one Obstacle per wall pixel into a bounded queue. The caller's frame loop
calls drain() once per iteration; drain() never blocks and returns whatever
is ready (possibly nothing).

A failed run (decode error, contradiction) is abandoned: the exception is
kept on the task and re-raised by result(); nothing is retried here beyond
config.max_attempts.
"""

from __future__ import annotations
import queue
import threading
from typing import List, Optional

import numpy as np

from wfcgen.config import GenerationConfig
from wfcgen.op.receipts import RunRc
from wfcgen.op.solver import Solver
from wfcgen.op.world import MeshCounter, Obstacle, scan_obstacles
from wfcgen.runner import generate

CHANNEL_CAPACITY = 64


class QuadrantTask:
    """Handle on one background generation."""

    def __init__(
        self,
        config: GenerationConfig,
        counter: MeshCounter,
        solver: Optional[Solver] = None,
        image: Optional[np.ndarray] = None,
        capacity: int = CHANNEL_CAPACITY,
    ):
        self.config = config
        self.counter = counter
        self._solver = solver
        self._image = image
        self._channel: "queue.Queue[Obstacle]" = queue.Queue(maxsize=capacity)
        self._done = threading.Event()
        self._cancel = threading.Event()
        self.grid: Optional[np.ndarray] = None
        self.rc: Optional[RunRc] = None
        self.error: Optional[BaseException] = None
        self._thread = threading.Thread(target=self._run, name="wfcgen-quadrant", daemon=True)

    def start(self) -> "QuadrantTask":
        self._thread.start()
        return self

    def _run(self) -> None:
        try:
            self.grid, self.rc = generate(self.config, solver=self._solver, image=self._image)
            for obstacle in scan_obstacles(
                self.grid,
                self.counter,
                wall_color=self.config.wall_color,
                scale=self.config.world_scale,
            ):
                while not self._cancel.is_set():
                    try:
                        self._channel.put(obstacle, timeout=0.05)
                        break
                    except queue.Full:
                        continue
                if self._cancel.is_set():
                    return
        except Exception as e:
            self.error = e
        finally:
            self._done.set()

    @property
    def done(self) -> bool:
        """True once the worker finished (successfully or not)."""
        return self._done.is_set()

    def drain(self) -> List[Obstacle]:
        """Every obstacle currently queued; never blocks."""
        out = []
        while True:
            try:
                out.append(self._channel.get_nowait())
            except queue.Empty:
                return out

    def cancel(self) -> None:
        """Stop streaming; a generation already inside the solver still runs to completion."""
        self._cancel.set()

    def result(self, timeout: Optional[float] = None) -> np.ndarray:
        """
        Block until the worker finishes and return the output grid.

        The worker only finishes once every obstacle has been queued, so keep
        calling drain() when the channel may fill up.

        Raises:
            TimeoutError: worker still running after `timeout`
            Exception: whatever the run failed with
        """
        if not self._done.wait(timeout):
            raise TimeoutError("quadrant generation still running")
        if self.error is not None:
            raise self.error
        return self.grid


def start_quadrant(
    config: GenerationConfig,
    counter: Optional[MeshCounter] = None,
    solver: Optional[Solver] = None,
    image: Optional[np.ndarray] = None,
) -> QuadrantTask:
    """
    Launch a background generation.

    Concurrent tasks should use distinct seeds (or None for fresh entropy)
    so their outputs are not correlated.
    """
    return QuadrantTask(config, counter or MeshCounter(), solver=solver, image=image).start()
