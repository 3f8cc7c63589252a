"""Interactive measurement surface.

The surface turns map gestures into shapes and keeps one derived number
in sync with them: square feet of lawn (area mode, polygons) or linear
feet of fence (length mode, polylines).

Every shape is owned by a ``Shape`` record holding its overlay and the
unsubscribe handles of the listeners attached to it, so detaching a
shape is a single call that releases everything it owns.

The measurement is always recomputed from the full current shape set
after each mutating event; nothing is accumulated incrementally.
"""

from __future__ import annotations

import enum
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Sequence

from instant_quote.core.config import settings

from .provider import MapHandle, MapLoadError, MapProvider, Overlay, Unsubscribe
from .spherical import LatLng, feet_from_meters, parse_path, sqft_from_square_meters

logger = logging.getLogger(__name__)

DEFAULT_CENTER = LatLng(40.7608, -111.891)
DEFAULT_ZOOM = 20
DEFAULT_BRAND_COLOR = "#16a34a"

MSG_ENTER_ADDRESS = "Enter an address to start."
MSG_ADDRESS_FOUND = "Address found. Start drawing."
MSG_ADDRESS_NOT_FOUND = "Address not found. Try again."
MSG_SEARCHING = "Searching address..."
MSG_DRAWING = "Drawing... measurement updating live."
MSG_READY = "Ready to draw."
MSG_MAP_FAILED = "Map failed to load."
MSG_MAP_UNAVAILABLE = "Map is unavailable."


class MeasurementMode(str, enum.Enum):
    AREA = "area"
    LENGTH = "length"


class ShapeState(str, enum.Enum):
    DRAWING = "drawing"
    CLOSED = "closed"
    REMOVED = "removed"


class SurfaceState(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"
    TORN_DOWN = "torn_down"


@dataclass
class SurfaceStatus:
    message: str
    is_error: bool = False


@dataclass(eq=False)
class Shape:
    id: int
    overlay: Overlay
    state: ShapeState = ShapeState.DRAWING
    subscriptions: list[Unsubscribe] = field(default_factory=list)

    def points(self) -> list[LatLng]:
        return self.overlay.path.get_array()

    def vertex_count(self) -> int:
        return self.overlay.path.get_length()

    def detach(self) -> None:
        for unsubscribe in self.subscriptions:
            unsubscribe()
        self.subscriptions.clear()
        self.overlay.set_map(None)
        self.state = ShapeState.REMOVED


class MeasurementSurface:
    """Drawing controller over an injected ``MapProvider``.

    Callbacks:

    - ``on_measurement(value)``: sqft (int) or feet (float, one decimal)
    - ``on_shapes(paths)``: committed shape paths as ``[{"lat", "lng"}]`` lists
    - ``on_status(status)``: user-visible status / error line

    The surface is single-threaded: call it from one event loop only.
    """

    def __init__(
        self,
        provider: MapProvider,
        mode: MeasurementMode = MeasurementMode.AREA,
        *,
        on_measurement: Optional[Callable[[Any], None]] = None,
        on_shapes: Optional[Callable[[list[list[dict[str, float]]]], None]] = None,
        on_status: Optional[Callable[[SurfaceStatus], None]] = None,
        brand_color: str = DEFAULT_BRAND_COLOR,
        cooldown_ms: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.mode = MeasurementMode(mode)
        self._on_measurement = on_measurement
        self._on_shapes = on_shapes
        self._on_status = on_status
        self.brand_color = brand_color
        cooldown = settings.DRAW_RESUME_COOLDOWN_MS if cooldown_ms is None else cooldown_ms
        self._cooldown_s = max(0, cooldown) / 1000.0
        self._clock = clock

        self.state = SurfaceState.IDLE
        self.map: Optional[MapHandle] = None
        self.shapes: list[Shape] = []
        self.draft: Optional[Shape] = None
        self.address_ready = False
        self.center: Optional[LatLng] = None
        self.value: Any = self._zero()
        self.status = SurfaceStatus(MSG_ENTER_ADDRESS)
        self.error: Optional[str] = None

        self._ids = itertools.count(1)
        self._map_subscriptions: list[Unsubscribe] = []
        self._resume_at = 0.0
        self._geocode_seq = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def torn_down(self) -> bool:
        return self.state is SurfaceState.TORN_DOWN

    @property
    def min_vertices(self) -> int:
        return 3 if self.mode is MeasurementMode.AREA else 2

    async def mount(
        self,
        container: Any = None,
        center: Optional[Any] = None,
        initial_paths: Iterable[Sequence[Any]] = (),
    ) -> bool:
        """Load the map and restore any persisted shapes.

        A known ``center`` (from a previously geocoded address) enables
        drawing immediately. Returns ``False`` when loading failed or the
        surface was torn down while the load was in flight.
        """
        if self.torn_down:
            return False
        self.state = SurfaceState.LOADING
        start = LatLng.parse(center) if center is not None else DEFAULT_CENTER
        try:
            map_handle = await self.provider.load_map(
                container,
                {"center": start, "zoom": DEFAULT_ZOOM, "map_type": "satellite"},
            )
        except MapLoadError as exc:
            return self._fail_mount(str(exc) or MSG_MAP_FAILED)
        except Exception as exc:  # provider SDKs raise arbitrary errors
            logger.warning("Map provider load failed: %s", exc)
            return self._fail_mount(MSG_MAP_FAILED)

        if self.torn_down:
            # Resolved after teardown: release what we were handed and stop
            map_handle.dispose()
            return False

        self.map = map_handle
        self._map_subscriptions = [
            self.provider.on_event(map_handle, "click", self.handle_click),
            self.provider.on_event(map_handle, "dblclick", self.handle_double_click),
        ]
        self.state = SurfaceState.READY
        if center is not None:
            self.center = start
            self.address_ready = True
            self._set_status(MSG_READY)
        self.restore(initial_paths)
        return True

    def _fail_mount(self, message: str) -> bool:
        if self.torn_down:
            return False
        self.state = SurfaceState.ERROR
        self.error = message
        self._set_status(message, is_error=True)
        return False

    def teardown(self) -> None:
        """Release listeners, overlays and the map; later callbacks are no-ops."""
        if self.torn_down:
            return
        self.state = SurfaceState.TORN_DOWN
        for unsubscribe in self._map_subscriptions:
            unsubscribe()
        self._map_subscriptions = []
        if self.draft is not None:
            self.draft.detach()
            self.draft = None
        for shape in self.shapes:
            shape.detach()
        self.shapes = []
        if self.map is not None:
            self.map.dispose()
            self.map = None

    # ------------------------------------------------------------------
    # Address / geocoding
    # ------------------------------------------------------------------

    async def locate(self, address: str) -> Optional[LatLng]:
        """Geocode ``address`` and recenter the map.

        Shapes and the measurement are left untouched; clearing on an
        address change is the caller's decision. Failures only update the
        status line.
        """
        if self.torn_down:
            return None
        if not address or not address.strip():
            self._set_status(MSG_ENTER_ADDRESS, is_error=True)
            return None
        if self.map is None:
            self._set_status(MSG_MAP_UNAVAILABLE, is_error=True)
            return None

        self._geocode_seq += 1
        seq = self._geocode_seq
        self._set_status(MSG_SEARCHING)
        try:
            result = await self.provider.geocode(address.strip())
        except Exception as exc:  # provider SDKs raise arbitrary errors
            logger.warning("Geocoding failed for %r: %s", address, exc)
            result = None

        # Torn down or superseded by a newer lookup while we were waiting
        if self.torn_down or seq != self._geocode_seq or self.map is None:
            return None
        if result is None:
            self._set_status(MSG_ADDRESS_NOT_FOUND, is_error=True)
            return None

        self.center = LatLng(result.lat, result.lng)
        self.map.set_center(self.center, DEFAULT_ZOOM)
        self.address_ready = True
        self.error = None
        self._set_status(MSG_ADDRESS_FOUND)
        return self.center

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------

    def _drawing_paused(self) -> bool:
        return self._clock() < self._resume_at

    def _can_draw(self) -> bool:
        if self.torn_down or self.state is not SurfaceState.READY:
            return False
        if not self.address_ready:
            self._set_status(MSG_ENTER_ADDRESS, is_error=True)
            return False
        return True

    def handle_click(self, point: Any) -> bool:
        """Append a vertex to the shape being drawn (starting one if needed)."""
        if not self._can_draw() or self._drawing_paused():
            return False
        vertex = LatLng.parse(point)
        if self.draft is None:
            self.draft = self._start_draft()
        path = self.draft.overlay.path
        if path.get_length() and path.get_array()[-1] == vertex:
            # The first half of a double-click lands on the same spot
            return False
        path.push(vertex)
        self._set_status(MSG_DRAWING)
        if self.mode is MeasurementMode.LENGTH:
            self.recompute()
        return True

    def handle_double_click(self, point: Any = None) -> bool:
        if not self._can_draw():
            return False
        return self.finish_shape()

    def _handle_draft_click(self, vertex: Optional[int]) -> None:
        # Clicking the starting vertex again closes the ring
        if vertex == 0 and self.mode is MeasurementMode.AREA:
            self.finish_shape()

    def _start_draft(self) -> Shape:
        style = {
            "strokeColor": self.brand_color,
            "strokeWeight": 2 if self.mode is MeasurementMode.AREA else 4,
            "editable": True,
            "draggable": False,
            "clickable": True,
        }
        if self.mode is MeasurementMode.AREA:
            style.update(fillColor=self.brand_color, fillOpacity=0.25)
            overlay = self.provider.create_polygon(self.map, [], style)
        else:
            style.update(geodesic=True, strokeOpacity=0.95)
            overlay = self.provider.create_polyline(self.map, [], style)
        shape = Shape(id=next(self._ids), overlay=overlay)
        shape.subscriptions.append(
            self.provider.on_event(overlay, "click", self._handle_draft_click)
        )
        shape.subscriptions.append(
            self.provider.on_event(overlay, "rightclick", lambda vertex=None: self._discard_draft())
        )
        return shape

    def _discard_draft(self) -> None:
        if self.torn_down or self.draft is None:
            return
        self.draft.detach()
        self.draft = None
        self.recompute()

    def finish_shape(self) -> bool:
        """Commit the draft if it has enough vertices, otherwise discard it."""
        draft = self.draft
        if draft is None:
            return False
        self.draft = None
        draft.detach()
        if draft.vertex_count() < self.min_vertices:
            self.recompute()
            return False

        self._attach(draft.points())
        self._resume_at = self._clock() + self._cooldown_s
        self.recompute()
        self._set_status(MSG_DRAWING)
        return True

    def _attach(self, points: Sequence[LatLng]) -> Shape:
        style = {"strokeColor": self.brand_color, "editable": True, "draggable": False, "clickable": True}
        if self.mode is MeasurementMode.AREA:
            style.update(fillColor=self.brand_color, fillOpacity=0.25, strokeWeight=2)
            overlay = self.provider.create_polygon(self.map, points, style)
        else:
            style.update(geodesic=True, strokeOpacity=0.95, strokeWeight=4)
            overlay = self.provider.create_polyline(self.map, points, style)
        overlay.set_editable(True)

        shape = Shape(id=next(self._ids), overlay=overlay, state=ShapeState.CLOSED)
        on_path = lambda index=None: self._on_path_changed(shape)  # noqa: E731
        for name in ("insert_at", "set_at", "remove_at"):
            shape.subscriptions.append(self.provider.on_event(overlay.path, name, on_path))
        shape.subscriptions.append(
            self.provider.on_event(overlay, "rightclick", lambda vertex=None: self._on_right_click(shape, vertex))
        )
        self.shapes.append(shape)
        return shape

    def _on_path_changed(self, shape: Shape) -> None:
        if self.torn_down or shape.state is not ShapeState.CLOSED:
            return
        if shape.vertex_count() < self.min_vertices:
            self._remove(shape)
        self.recompute()

    def _on_right_click(self, shape: Shape, vertex: Optional[int]) -> None:
        if self.torn_down or shape.state is not ShapeState.CLOSED:
            return
        if vertex is None:
            self._remove(shape)
            self.recompute()
            return
        # Vertex handle: delete just that vertex; the path listener recomputes
        shape.overlay.path.remove_at(vertex)

    # ------------------------------------------------------------------
    # Programmatic edits
    # ------------------------------------------------------------------

    def get_shape(self, shape_id: int) -> Shape:
        for shape in self.shapes:
            if shape.id == shape_id:
                return shape
        raise KeyError(shape_id)

    def insert_vertex(self, shape_id: int, index: int, point: Any) -> None:
        self.get_shape(shape_id).overlay.path.insert_at(index, LatLng.parse(point))

    def move_vertex(self, shape_id: int, index: int, point: Any) -> None:
        self.get_shape(shape_id).overlay.path.set_at(index, LatLng.parse(point))

    def remove_vertex(self, shape_id: int, index: int) -> None:
        self.get_shape(shape_id).overlay.path.remove_at(index)

    def _remove(self, shape: Shape) -> None:
        shape.detach()
        self.shapes = [s for s in self.shapes if s is not shape]

    def remove_shape(self, shape_id: int) -> None:
        self._remove(self.get_shape(shape_id))
        self.recompute()

    def remove_last(self) -> bool:
        """Drop the in-progress draft, or else the most recently committed shape."""
        if self.torn_down:
            return False
        if self.draft is not None:
            self._discard_draft()
            return True
        if not self.shapes:
            return False
        self._remove(self.shapes[-1])
        self.recompute()
        return True

    def clear_all(self) -> None:
        """Remove every shape and return to the pre-draw mode."""
        if self.torn_down:
            return
        if self.draft is not None:
            self.draft.detach()
            self.draft = None
        for shape in self.shapes:
            shape.detach()
        self.shapes = []
        self._resume_at = 0.0
        self.recompute()
        self._set_status(MSG_READY if self.address_ready else MSG_ENTER_ADDRESS)

    def restore(self, paths: Iterable[Sequence[Any]]) -> int:
        """Re-create committed shapes from persisted paths; invalid ones are skipped."""
        if self.torn_down:
            return 0
        restored = 0
        for raw in paths or ():
            try:
                points = parse_path(raw)
            except (TypeError, ValueError, KeyError):
                logger.info("Skipping malformed persisted shape")
                continue
            if len(points) < self.min_vertices:
                continue
            self._attach(points)
            restored += 1
        self.recompute()
        return restored

    # ------------------------------------------------------------------
    # Measurement
    # ------------------------------------------------------------------

    def _zero(self) -> Any:
        return 0 if self.mode is MeasurementMode.AREA else 0.0

    def _measured_paths(self) -> list[list[LatLng]]:
        paths = [shape.points() for shape in self.shapes if shape.state is ShapeState.CLOSED]
        if self.mode is MeasurementMode.LENGTH and self.draft is not None:
            draft_points = self.draft.points()
            if len(draft_points) >= 2:
                paths.append(draft_points)
        return [p for p in paths if len(p) >= self.min_vertices]

    def recompute(self) -> Any:
        """Derive the measurement from the current shape set and publish it."""
        if self.torn_down:
            return self.value
        paths = self._measured_paths()
        if self.mode is MeasurementMode.AREA:
            self.value = sqft_from_square_meters(sum(self.provider.compute_area(p) for p in paths))
        else:
            self.value = feet_from_meters(sum(self.provider.compute_length(p) for p in paths))
        if self._on_measurement is not None:
            self._on_measurement(self.value)
        if self._on_shapes is not None:
            self._on_shapes(self.serialize())
        return self.value

    def serialize(self) -> list[list[dict[str, float]]]:
        return [[p.as_dict() for p in shape.points()] for shape in self.shapes if shape.state is ShapeState.CLOSED]

    def _set_status(self, message: str, is_error: bool = False) -> None:
        self.status = SurfaceStatus(message, is_error)
        if self._on_status is not None:
            self._on_status(self.status)
