"""
Render jobs.

A job runs the sample loop of a renderer on a background thread, one
batch ("frame") of samples at a time, and reports after every frame.
It is controlled from a single thread through start / wait / cancel.
"""

from __future__ import annotations
import logging
import threading
from typing import Callable, Optional

from .image import Image
from .renderer import Renderer

logger = logging.getLogger(__name__)

# Called after every frame with the number of samples accumulated so far;
# returning a false value stops the job.
FrameCallback = Callable[[int], bool]


class RenderJob:
    """Background sample loop with cancellation."""

    def __init__(self, renderer: Renderer, image: Image, sample_count: int = 0,
                 samples_per_frame: int = 1):
        """Create a job.

        Args:
            renderer: Renderer accumulating into ``image``
            image: Target image
            sample_count: Total samples per pixel (0 = run until cancelled)
            samples_per_frame: Samples per pixel in each frame
        """
        if sample_count < 0:
            raise ValueError(f"sample_count must be >= 0, got {sample_count}")
        if samples_per_frame <= 0:
            raise ValueError(f"samples_per_frame must be positive, got {samples_per_frame}")
        self.renderer = renderer
        self.image = image
        self.sample_count = sample_count
        self.samples_per_frame = samples_per_frame
        self.samples_done = 0
        self.error: Optional[BaseException] = None

        self._cond = threading.Condition()
        self._done = True
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        with self._cond:
            return not self._done

    def start(self, on_frame: Optional[FrameCallback] = None) -> None:
        """Launch the worker thread.

        Raises:
            RuntimeError: If the job is already running
        """
        with self._cond:
            if not self._done:
                raise RuntimeError("render job is already running")
            self._done = False
        self._cancelled.clear()
        self.error = None
        self._thread = threading.Thread(target=self._run, args=(on_frame,),
                                        name="render-job", daemon=True)
        self._thread.start()

    def _run(self, on_frame: Optional[FrameCallback]) -> None:
        try:
            i = self.samples_done
            frame = 0
            while not self._cancelled.is_set():
                if self.sample_count and i >= self.sample_count:
                    break
                j = self.samples_per_frame
                if self.sample_count:
                    j = min(j, self.sample_count - i)
                self.renderer.render(self.image, i, j)
                i += j
                self.samples_done = i
                logger.debug("Frame %d done, %d samples per pixel", frame, i)
                frame += 1
                if on_frame is not None and not on_frame(i):
                    break
        except Exception as e:
            logger.exception("Render job failed")
            self.error = e
        finally:
            with self._cond:
                self._done = True
                self._cond.notify_all()

    def wait(self, timeout_ms: int = 0) -> bool:
        """Block until the job finishes.

        Args:
            timeout_ms: Maximum time to wait in milliseconds; 0 waits
                without limit

        Returns:
            True if the job has finished
        """
        with self._cond:
            if timeout_ms == 0:
                while not self._done:
                    self._cond.wait()
            else:
                self._cond.wait_for(lambda: self._done, timeout_ms / 1000.0)
            done = self._done
        if done and self._thread is not None:
            self._thread.join()
            self._thread = None
        return done

    def cancel(self) -> None:
        """Ask the worker to stop after the current frame."""
        self._cancelled.set()
