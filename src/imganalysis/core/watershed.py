"""Vincent-Soille watershed segmentation by immersion simulation.

Pixels are flooded level by level in order of increasing intensity. Inside a
level, labels spread breadth-first from already flooded basins, using a
separator entry in the FIFO to count the geodesic distance; a pixel reached
by two different basins at the same distance becomes part of a watershed
line. The flood order matters: changing it changes which plateaus are split
by a line.

The returned label grid uses 0 for watershed lines and positive ids for
regions. While flooding, "not yet processed" and "pending at this level" use
their own negative sentinels so they never collide with a region id or a line.
"""

import logging
from collections import deque

import numpy as np

logger = logging.getLogger(__name__)

WATERSHED_LINE = 0
INIT = -1
MASK = -2
_SEPARATOR = -1

LINE_COLOR = (255, 0, 0)

_OFFSETS = {
    4: ((0, 1), (0, -1), (1, 0), (-1, 0)),
    8: ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1)),
}


class Watershed:
    """Immersion segmenter for a single-channel intensity grid."""

    def __init__(self, connectivity=8):
        if connectivity not in _OFFSETS:
            logger.warning("Unsupported connectivity %s, using 8", connectivity)
            connectivity = 8
        self.connectivity = connectivity
        self.offsets = _OFFSETS[connectivity]
        self.region_count = 0

    def _neighbour_lists(self, width, height):
        neighbours = []
        for y in range(height):
            for x in range(width):
                row = []
                for dx, dy in self.offsets:
                    nx, ny = x + dx, y + dy
                    if 0 <= nx < width and 0 <= ny < height:
                        row.append(ny * width + nx)
                neighbours.append(row)
        return neighbours

    def segment(self, intensity):
        """Label grid for a (H, W) intensity array."""
        intensity = np.asarray(intensity)
        height, width = intensity.shape
        if intensity.size == 0:
            return np.zeros((height, width), dtype=np.int64)

        values = intensity.ravel().tolist()
        order = np.argsort(intensity.ravel(), kind="stable").tolist()
        neighbours = self._neighbour_lists(width, height)
        labels = [INIT] * len(values)
        distances = [0] * len(values)
        self.region_count = 0

        self._label_minima(values, order, neighbours, labels)
        minima = self.region_count
        self._immerse(values, order, neighbours, labels, distances)
        self._thin_lines(neighbours, labels)

        result = np.array(labels, dtype=np.int64).reshape(height, width)
        logger.debug(
            "Watershed: %d minima, %d regions, %d line pixels",
            minima, self.region_count, int(np.count_nonzero(result == WATERSHED_LINE)),
        )
        return result

    def _label_minima(self, values, order, neighbours, labels):
        """Give every regional minimum plateau its own label."""
        local_min = [all(values[q] >= values[p] for q in neighbours[p]) for p in range(len(values))]
        examined = bytearray(len(values))
        for p in order:
            if not local_min[p] or examined[p]:
                continue
            level = values[p]
            plateau = []
            regional = True
            examined[p] = 1
            queue = deque([p])
            while queue:
                q = queue.popleft()
                plateau.append(q)
                regional = regional and local_min[q]
                for r in neighbours[q]:
                    if not examined[r] and values[r] == level:
                        examined[r] = 1
                        queue.append(r)
            if regional:
                self.region_count += 1
                for q in plateau:
                    labels[q] = self.region_count

    def _immerse(self, values, order, neighbours, labels, distances):
        total = len(order)
        start = 0
        while start < total:
            level = values[order[start]]
            end = start
            while end < total and values[order[end]] == level:
                end += 1
            level_pixels = order[start:end]
            start = end

            fifo = deque()
            for p in level_pixels:
                if labels[p] != INIT:
                    continue
                labels[p] = MASK
                if any(labels[q] >= 0 for q in neighbours[p]):
                    distances[p] = 1
                    fifo.append(p)

            current_distance = 1
            fifo.append(_SEPARATOR)
            while True:
                p = fifo.popleft()
                if p == _SEPARATOR:
                    if not fifo:
                        break
                    fifo.append(_SEPARATOR)
                    current_distance += 1
                    continue
                found = set()
                touches_line = False
                for q in neighbours[p]:
                    label = labels[q]
                    if distances[q] < current_distance and label >= 0:
                        if label > 0:
                            found.add(label)
                        else:
                            touches_line = True
                    elif label == MASK and distances[q] == 0:
                        distances[q] = current_distance + 1
                        fifo.append(q)
                if len(found) == 1:
                    labels[p] = found.pop()
                elif found or touches_line:
                    labels[p] = WATERSHED_LINE

            # Whatever is still pending was not reachable from any basin.
            for p in level_pixels:
                distances[p] = 0
                if labels[p] == MASK:
                    self.region_count += 1
                    self._flood(p, self.region_count, neighbours, labels)

    @staticmethod
    def _flood(start, label, neighbours, labels):
        labels[start] = label
        queue = deque([start])
        while queue:
            p = queue.popleft()
            for q in neighbours[p]:
                if labels[q] == MASK:
                    labels[q] = label
                    queue.append(q)

    @staticmethod
    def _thin_lines(neighbours, labels):
        """Hand line pixels bordering fewer than two regions to a neighbouring region."""
        pending = [p for p, label in enumerate(labels) if label == WATERSHED_LINE]
        while pending:
            changed = False
            enclosed = []
            for p in pending:
                found = {labels[q] for q in neighbours[p] if labels[q] > 0}
                if len(found) == 1:
                    labels[p] = found.pop()
                    changed = True
                elif not found:
                    enclosed.append(p)
            pending = enclosed
            if pending and not changed:
                # Pocket of line pixels with no region around: take the nearest region.
                p = pending.pop(0)
                labels[p] = Watershed._nearest_region(p, neighbours, labels)

    @staticmethod
    def _nearest_region(start, neighbours, labels):
        seen = {start}
        queue = deque([start])
        while queue:
            p = queue.popleft()
            for q in neighbours[p]:
                if labels[q] > 0:
                    return labels[q]
                if q not in seen:
                    seen.add(q)
                    queue.append(q)
        return 1


def segment(intensity, connectivity=8):
    """Watershed label grid of a (H, W) intensity array."""
    return Watershed(connectivity).segment(intensity)


def render_labels(buffer, labels):
    """Paint lines red and regions in gray levels proportional to their id."""
    labels = np.asarray(labels)
    max_label = int(labels.max()) if labels.size else 0
    out = np.zeros(labels.shape + (3,), dtype=np.uint8)
    if max_label > 0:
        gray = np.where(labels > 0, labels * 255 // max_label, 0).astype(np.uint8)
        out[:] = gray[:, :, None]
    out[labels == WATERSHED_LINE] = LINE_COLOR
    buffer.pixels[:] = out


def watershed(buffer, connectivity=8):
    """Segment the red channel of a grayscale buffer and render the result in place."""
    labels = segment(buffer.pixels[:, :, 0], connectivity)
    render_labels(buffer, labels)
    return labels
