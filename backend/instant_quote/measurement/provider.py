"""Capability interface the measurement surface draws through.

The surface never talks to a concrete map SDK. Anything that provides
these operations (a browser bridge, the in-process headless provider, a
test double) can host it.

Event names follow the map SDK conventions:

- map: ``click`` (point), ``dblclick`` (point)
- overlay: ``click`` (vertex index or None), ``rightclick`` (vertex index or None)
- overlay path: ``insert_at`` / ``set_at`` / ``remove_at`` (index)
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Protocol, Sequence

from ..services.geocode import GeocodeResult
from .spherical import LatLng

Unsubscribe = Callable[[], None]


class MapLoadError(Exception):
    """The map provider could not be loaded or initialised."""


class MapHandle(Protocol):
    def set_center(self, center: LatLng, zoom: Optional[int] = None) -> None: ...

    def dispose(self) -> None: ...


class OverlayPath(Protocol):
    def get_array(self) -> list[LatLng]: ...

    def get_length(self) -> int: ...

    def push(self, point: LatLng) -> None: ...

    def insert_at(self, index: int, point: LatLng) -> None: ...

    def set_at(self, index: int, point: LatLng) -> None: ...

    def remove_at(self, index: int) -> LatLng: ...


class Overlay(Protocol):
    path: OverlayPath

    def set_map(self, map_handle: Optional[MapHandle]) -> None: ...

    def set_editable(self, editable: bool) -> None: ...


class MapProvider(Protocol):
    async def load_map(self, container: Any, options: Mapping[str, Any]) -> MapHandle: ...

    def create_polygon(self, map_handle: MapHandle, path: Sequence[LatLng], style: Mapping[str, Any]) -> Overlay: ...

    def create_polyline(self, map_handle: MapHandle, path: Sequence[LatLng], style: Mapping[str, Any]) -> Overlay: ...

    async def geocode(self, address: str) -> Optional[GeocodeResult]: ...

    def compute_area(self, path: Sequence[LatLng]) -> float: ...

    def compute_length(self, path: Sequence[LatLng]) -> float: ...

    def on_event(self, target: Any, name: str, handler: Callable[..., None]) -> Unsubscribe: ...
