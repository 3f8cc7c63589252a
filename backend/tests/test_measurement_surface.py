import asyncio

from instant_quote.measurement import MeasurementMode, MeasurementSurface, SurfaceState
from instant_quote.measurement.headless import HeadlessMapProvider
from instant_quote.measurement.spherical import measure_area_sqft, measure_length_feet, parse_path
from instant_quote.measurement.surface import (
    MSG_ADDRESS_FOUND,
    MSG_ADDRESS_NOT_FOUND,
    MSG_ENTER_ADDRESS,
    MSG_READY,
)
from instant_quote.services.geocode import GeocodeResult

LOT_A = parse_path([(40.0, -111.0), (40.0, -110.9995), (40.0004, -110.9995), (40.0004, -111.0)])
LOT_B = parse_path([(40.001, -111.0), (40.001, -110.9993), (40.0013, -110.9993)])
FENCE = parse_path([(40.0, -111.0), (40.0, -110.9996), (40.0003, -110.9996)])


def run(coro):
    return asyncio.run(coro)


async def ready_surface(provider, clock, mode=MeasurementMode.AREA, **kwargs):
    surface = MeasurementSurface(provider, mode, clock=clock, cooldown_ms=300, **kwargs)
    assert await surface.mount("map")
    await surface.locate("123 Main St")
    return surface


def draw(provider, surface, clock, points):
    """Click every vertex, then double-click the last one like a browser does."""
    map_handle = provider.maps[-1]
    for point in points:
        map_handle.trigger("click", point)
    map_handle.trigger("click", points[-1])
    map_handle.trigger("dblclick", points[-1])
    clock.advance(1)


def test_drawing_is_blocked_until_address_resolves(provider, clock):
    async def scenario():
        statuses = []
        surface = MeasurementSurface(provider, clock=clock, on_status=statuses.append)
        await surface.mount("map")
        assert surface.handle_click(LOT_A[0]) is False
        assert statuses[-1].message == MSG_ENTER_ADDRESS
        assert statuses[-1].is_error
        assert provider.overlays == []
        assert surface.value == 0

        await surface.locate("123 Main St")
        assert surface.status.message == MSG_ADDRESS_FOUND
        assert provider.maps[0].center == (40.7608, -111.891)
        assert surface.handle_click(LOT_A[0]) is True

    run(scenario())


def test_completed_polygon_reports_area(provider, clock):
    async def scenario():
        values, shapes = [], []
        surface = await ready_surface(provider, clock, on_measurement=values.append, on_shapes=shapes.append)
        draw(provider, surface, clock, LOT_A)
        assert len(surface.shapes) == 1
        assert surface.shapes[0].vertex_count() == 4
        assert surface.value == measure_area_sqft([LOT_A])
        assert surface.value > 0
        assert values[-1] == surface.value
        assert shapes[-1] == [[p.as_dict() for p in LOT_A]]

    run(scenario())


def test_measurement_depends_only_on_current_shapes(provider, clock):
    async def scenario():
        surface = await ready_surface(provider, clock)
        draw(provider, surface, clock, LOT_A)
        draw(provider, surface, clock, LOT_B)
        assert surface.value == measure_area_sqft([LOT_A, LOT_B])

        # Right-click on the body of the first shape removes it
        surface.shapes[0].overlay.trigger("rightclick", None)
        assert len(surface.shapes) == 1

        fresh_provider = HeadlessMapProvider(geocoder=provider._geocoder)
        fresh = await ready_surface(fresh_provider, clock)
        draw(fresh_provider, fresh, clock, LOT_B)
        assert surface.value == fresh.value == measure_area_sqft([LOT_B])

    run(scenario())


def test_vertex_edits_recompute_and_small_shapes_are_deleted(provider, clock):
    async def scenario():
        surface = await ready_surface(provider, clock)
        draw(provider, surface, clock, LOT_A)
        shape = surface.shapes[0]

        moved = (40.0006, -111.0)
        surface.move_vertex(shape.id, 3, moved)
        edited = LOT_A[:3] + parse_path([moved])
        assert surface.value == measure_area_sqft([edited])

        # Right-click on a vertex deletes just that vertex
        shape.overlay.trigger("rightclick", 3)
        assert surface.shapes == [shape]
        assert surface.value == measure_area_sqft([LOT_A[:3]])

        surface.remove_vertex(shape.id, 0)
        assert surface.shapes == []
        assert surface.value == 0
        assert shape.overlay.released
        assert shape.overlay.listener_count() == 0

    run(scenario())


def test_clicking_first_vertex_closes_ring(provider, clock):
    async def scenario():
        surface = await ready_surface(provider, clock)
        for point in LOT_B:
            provider.maps[0].trigger("click", point)
        surface.draft.overlay.trigger("click", 0)
        assert surface.draft is None
        assert len(surface.shapes) == 1
        assert surface.value == measure_area_sqft([LOT_B])

    run(scenario())


def test_short_draft_is_discarded(provider, clock):
    async def scenario():
        surface = await ready_surface(provider, clock)
        draw(provider, surface, clock, LOT_A[:2])
        assert surface.shapes == []
        assert surface.value == 0
        assert provider.live_overlays() == []

    run(scenario())


def test_clicks_during_cooldown_are_ignored(provider, clock):
    async def scenario():
        surface = await ready_surface(provider, clock)
        for point in LOT_A:
            provider.maps[0].trigger("click", point)
        provider.maps[0].trigger("dblclick", LOT_A[-1])

        clock.advance(0.1)
        assert surface.handle_click(LOT_B[0]) is False
        assert surface.draft is None
        clock.advance(0.25)
        assert surface.handle_click(LOT_B[0]) is True

    run(scenario())


def test_clear_all_and_remove_last(provider, clock):
    async def scenario():
        statuses = []
        surface = await ready_surface(provider, clock, on_status=statuses.append)
        draw(provider, surface, clock, LOT_A)
        draw(provider, surface, clock, LOT_B)

        assert surface.remove_last() is True
        assert surface.value == measure_area_sqft([LOT_A])

        surface.clear_all()
        assert surface.shapes == []
        assert surface.value == 0
        assert statuses[-1].message == MSG_READY
        assert provider.live_overlays() == []
        assert surface.remove_last() is False

    run(scenario())


def test_length_mode_counts_draft_and_commits_polylines(provider, clock):
    async def scenario():
        values = []
        surface = await ready_surface(provider, clock, mode=MeasurementMode.LENGTH, on_measurement=values.append)
        map_handle = provider.maps[0]
        map_handle.trigger("click", FENCE[0])
        assert surface.value == 0.0
        map_handle.trigger("click", FENCE[1])
        assert surface.value == measure_length_feet([FENCE[:2]])

        map_handle.trigger("click", FENCE[2])
        map_handle.trigger("dblclick", FENCE[2])
        assert surface.value == measure_length_feet([FENCE])
        assert provider.overlays[-1].kind == "polyline"
        assert isinstance(values[-1], float)

        # A single point line is dropped and does not change the total
        clock.advance(1)
        draw(provider, surface, clock, FENCE[:1])
        assert len(surface.shapes) == 1
        assert surface.value == measure_length_feet([FENCE])

    run(scenario())


def test_geocode_failure_keeps_shapes(provider, clock):
    async def scenario():
        surface = await ready_surface(provider, clock)
        draw(provider, surface, clock, LOT_A)
        before = surface.value

        assert await surface.locate("Nowhere Lane") is None
        assert surface.status.message == MSG_ADDRESS_NOT_FOUND
        assert surface.status.is_error
        assert surface.value == before
        assert len(surface.shapes) == 1
        assert surface.address_ready

    run(scenario())


def test_map_load_failure_sets_error_state(clock):
    async def scenario():
        statuses = []
        surface = MeasurementSurface(HeadlessMapProvider(fail_load=True), clock=clock, on_status=statuses.append)
        assert await surface.mount("map") is False
        assert surface.state is SurfaceState.ERROR
        assert statuses[-1].is_error
        assert surface.handle_click(LOT_A[0]) is False
        assert surface.value == 0

    run(scenario())


def test_teardown_releases_everything_and_ignores_late_events(provider, clock):
    async def scenario():
        values = []
        surface = await ready_surface(provider, clock, on_measurement=values.append)
        draw(provider, surface, clock, LOT_A)
        provider.maps[0].trigger("click", LOT_B[0])
        overlays = list(provider.overlays)
        map_handle = provider.maps[0]

        surface.teardown()
        assert surface.state is SurfaceState.TORN_DOWN
        assert map_handle.disposed
        assert provider.live_overlays() == []
        assert all(o.listener_count() == 0 and o.path.listener_count() == 0 for o in overlays)

        calls = len(values)
        assert surface.handle_click(LOT_B[1]) is False
        surface.recompute()
        surface.clear_all()
        assert await surface.locate("123 Main St") is None
        assert len(values) == calls

    run(scenario())


def test_map_resolving_after_teardown_is_disposed(clock):
    class SlowProvider(HeadlessMapProvider):
        def __init__(self):
            super().__init__()
            self.gate = asyncio.Event()

        async def load_map(self, container, options):
            await self.gate.wait()
            return await super().load_map(container, options)

    async def scenario():
        slow = SlowProvider()
        surface = MeasurementSurface(slow, clock=clock)
        pending = asyncio.ensure_future(surface.mount("map"))
        await asyncio.sleep(0)
        surface.teardown()
        slow.gate.set()
        assert await pending is False
        assert slow.maps[0].disposed
        assert slow.maps[0].listener_count() == 0
        assert surface.map is None

    run(scenario())


def test_geocode_resolving_after_teardown_is_ignored(clock):
    async def scenario():
        release = asyncio.Event()

        async def slow_geocode(address):
            await release.wait()
            return GeocodeResult(lat=41.0, lng=-112.0)

        slow = HeadlessMapProvider(geocoder=slow_geocode)
        statuses = []
        surface = MeasurementSurface(slow, clock=clock, on_status=statuses.append)
        await surface.mount("map")
        pending = asyncio.ensure_future(surface.locate("123 Main St"))
        await asyncio.sleep(0)
        surface.teardown()
        release.set()
        assert await pending is None
        assert surface.address_ready is False
        assert statuses[-1].message != MSG_ADDRESS_FOUND

    run(scenario())


def test_restore_skips_invalid_paths(provider, clock):
    async def scenario():
        surface = MeasurementSurface(provider, clock=clock)
        await surface.mount(
            "map",
            center={"lat": 40.0, "lng": -111.0},
            initial_paths=[
                [p.as_dict() for p in LOT_A],
                [{"lat": 40.0, "lng": -111.0}, {"lat": 40.1, "lng": -111.0}],
                [{"lat": "bad", "lng": 0}, {"lat": 1, "lng": 1}, {"lat": 2, "lng": 2}],
            ],
        )
        assert len(surface.shapes) == 1
        assert surface.value == measure_area_sqft([LOT_A])
        # A known center means the address was already resolved
        assert surface.address_ready
        assert surface.status.message == MSG_READY

    run(scenario())
