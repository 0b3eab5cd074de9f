import threading
from collections import deque

import matplotlib.pyplot as plt
import numpy as np

from status_text import StatusText

MAX_VISIBLE_POINTS = 300

fig = None
ax = None
line = None


class PlotFeed:
    """Collects display points and status from the capture thread for the GUI thread."""

    def __init__(self, max_points: int = MAX_VISIBLE_POINTS):
        self.points = deque(maxlen=max_points)
        self.status = StatusText()
        self._lock = threading.Lock()

    def add_point(self, index: int, value: float):
        with self._lock:
            self.points.append((index, value))

    def set_status(self, status: StatusText):
        with self._lock:
            self.status = status

    def snapshot(self):
        with self._lock:
            return list(self.points), self.status


def init_plot():
    global fig, ax, line
    plt.ion()
    fig, ax = plt.subplots(figsize=(10, 5))
    fig.canvas.manager.set_window_title("Pulse Synth")
    line, = ax.plot([], [], color="tab:green", linewidth=2)
    ax.set_xlabel("sample")
    ax.set_ylabel("red intensity")
    fig.tight_layout()
    fig.show()


def status_title(status: StatusText) -> str:
    return f"{status.heart_rate}   {status.mood}   {status.contact}\n{status.detail}"


def update_plot(feed: PlotFeed):
    if fig is None:
        return

    points, status = feed.snapshot()
    if points:
        xy = np.asarray(points, dtype=float)
        line.set_xdata(xy[:, 0])
        line.set_ydata(xy[:, 1])
        ax.relim()
        ax.autoscale_view()
    ax.set_title(status_title(status), fontsize=10)

    fig.canvas.draw_idle()
    plt.pause(0.001)


def close_plot():
    global fig, ax, line
    if fig is not None:
        plt.close(fig)
    fig = ax = line = None
