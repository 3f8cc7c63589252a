"""In-process map provider.

Keeps overlays as plain Python objects and dispatches the same events a
browser map would. The server uses it to replay submitted shapes through
the measurement surface; tests use it to drive user gestures (``click``,
``dblclick``, ``rightclick``, vertex drags) deterministically.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

from ..services.geocode import GeocodeResult, geocode_address_async
from .provider import MapLoadError, Unsubscribe
from .spherical import LatLng, compute_area, compute_length

logger = logging.getLogger(__name__)

Geocoder = Callable[[str], Awaitable[Optional[GeocodeResult]]]


class _Evented:
    def __init__(self) -> None:
        self._listeners: dict[str, list[Callable[..., None]]] = defaultdict(list)

    def listener_count(self, name: Optional[str] = None) -> int:
        if name is not None:
            return len(self._listeners.get(name, ()))
        return sum(len(handlers) for handlers in self._listeners.values())

    def trigger(self, name: str, *args: Any) -> None:
        # Copy so handlers may unsubscribe while being dispatched
        for handler in list(self._listeners.get(name, ())):
            handler(*args)


class HeadlessMap(_Evented):
    def __init__(self, container: Any, options: Mapping[str, Any]):
        super().__init__()
        self.container = container
        self.center = LatLng.parse(options.get("center") or (0.0, 0.0))
        self.zoom = int(options.get("zoom") or 20)
        self.map_type = options.get("map_type", "satellite")
        self.disposed = False

    def set_center(self, center: LatLng, zoom: Optional[int] = None) -> None:
        self.center = center
        if zoom is not None:
            self.zoom = zoom

    def dispose(self) -> None:
        self._listeners.clear()
        self.disposed = True


class HeadlessPath(_Evented):
    def __init__(self, points: Sequence[LatLng] = ()):
        super().__init__()
        self._points: list[LatLng] = list(points)

    def get_array(self) -> list[LatLng]:
        return list(self._points)

    def get_length(self) -> int:
        return len(self._points)

    def push(self, point: LatLng) -> None:
        self.insert_at(len(self._points), point)

    def insert_at(self, index: int, point: LatLng) -> None:
        self._points.insert(index, point)
        self.trigger("insert_at", index)

    def set_at(self, index: int, point: LatLng) -> None:
        self._points[index] = point
        self.trigger("set_at", index)

    def remove_at(self, index: int) -> LatLng:
        point = self._points.pop(index)
        self.trigger("remove_at", index)
        return point


class HeadlessOverlay(_Evented):
    def __init__(self, kind: str, map_handle: Optional[HeadlessMap], path: Sequence[LatLng], style: Mapping[str, Any]):
        super().__init__()
        self.kind = kind
        self.map = map_handle
        self.path = HeadlessPath(path)
        self.style = dict(style)
        self.editable = bool(style.get("editable", True))

    def set_map(self, map_handle: Optional[HeadlessMap]) -> None:
        self.map = map_handle

    def set_editable(self, editable: bool) -> None:
        self.editable = editable

    @property
    def released(self) -> bool:
        return self.map is None


class HeadlessMapProvider:
    """Map provider without a renderer.

    ``geocoder`` defaults to the Google Geocoding helper; pass a coroutine
    function to substitute deterministic results. ``fail_load`` makes
    ``load_map`` raise, for exercising the surface's error state.
    """

    def __init__(self, geocoder: Optional[Geocoder] = None, fail_load: bool = False):
        self._geocoder = geocoder or geocode_address_async
        self.fail_load = fail_load
        self.maps: list[HeadlessMap] = []
        self.overlays: list[HeadlessOverlay] = []

    async def load_map(self, container: Any, options: Mapping[str, Any]) -> HeadlessMap:
        if self.fail_load:
            raise MapLoadError("Map failed to load.")
        map_handle = HeadlessMap(container, options)
        self.maps.append(map_handle)
        return map_handle

    def _create(self, kind: str, map_handle: Optional[HeadlessMap], path: Sequence[LatLng], style: Mapping[str, Any]) -> HeadlessOverlay:
        overlay = HeadlessOverlay(kind, map_handle, path, style)
        self.overlays.append(overlay)
        return overlay

    def create_polygon(self, map_handle: Optional[HeadlessMap], path: Sequence[LatLng], style: Mapping[str, Any]) -> HeadlessOverlay:
        return self._create("polygon", map_handle, path, style)

    def create_polyline(self, map_handle: Optional[HeadlessMap], path: Sequence[LatLng], style: Mapping[str, Any]) -> HeadlessOverlay:
        return self._create("polyline", map_handle, path, style)

    async def geocode(self, address: str) -> Optional[GeocodeResult]:
        return await self._geocoder(address)

    def compute_area(self, path: Sequence[LatLng]) -> float:
        return compute_area(path)

    def compute_length(self, path: Sequence[LatLng]) -> float:
        return compute_length(path)

    def on_event(self, target: _Evented, name: str, handler: Callable[..., None]) -> Unsubscribe:
        target._listeners[name].append(handler)

        def unsubscribe() -> None:
            handlers = target._listeners.get(name)
            if handlers and handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def live_overlays(self) -> list[HeadlessOverlay]:
        return [overlay for overlay in self.overlays if not overlay.released]
