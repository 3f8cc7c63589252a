from instant_quote.pricing import FenceSelection, compute_fence_estimate
from instant_quote.pricing.fence import DEFAULT_FENCE_CARD, fence_rate_card_from_config, normalize_feet


def test_wood_fence_with_gate_and_removal():
    estimate = compute_fence_estimate(
        100, FenceSelection(fence_type="wood", walk_gate_qty=1, remove_old_fence=True)
    )
    assert estimate.breakdown == {
        "material": (2800, 3800),
        "walkGate": (350, 550),
        "doubleGate": (0, 0),
        "removal": (400, 700),
    }
    assert (estimate.low, estimate.high) == (3550, 5050)
    data = estimate.as_dict()
    assert data["estimatedMin"] == 3550
    assert data["estimatedMax"] == 5050
    assert data["breakdown"]["material"] == {"min": 2800, "max": 3800}


def test_zero_feet_is_all_zero():
    estimate = compute_fence_estimate(0, FenceSelection(walk_gate_qty=3, remove_old_fence=True))
    assert estimate.low == 0
    assert estimate.high == 0
    assert estimate.walk_gate_qty == 0
    assert estimate.remove_old_fence is False


def test_feet_rounded_to_one_decimal_before_pricing():
    assert normalize_feet(12.345) == 12.3
    assert normalize_feet("12.35") == 12.4
    assert normalize_feet(-4) == 0.0
    assert normalize_feet(10**400) == 10_000_000.0
    estimate = compute_fence_estimate("12.35", FenceSelection(fence_type="wood"))
    assert estimate.feet == 12.4
    assert estimate.breakdown["material"] == (347, 471)


def test_gate_quantities_are_clamped():
    estimate = compute_fence_estimate(10, FenceSelection(walk_gate_qty=15, double_gate_qty=-3))
    assert estimate.walk_gate_qty == 10
    assert estimate.double_gate_qty == 0
    assert estimate.breakdown["walkGate"] == (3500, 5500)


def test_unknown_fence_type_uses_default():
    estimate = compute_fence_estimate(10, FenceSelection(fence_type="bamboo"))
    assert estimate.fence_type == DEFAULT_FENCE_CARD.default_type


def test_rate_card_from_widget_config_aliases():
    card = fence_rate_card_from_config(
        {
            "pricing": {"vinyl": {"price_per_ft_low": 30, "price_per_ft_high": 40}},
            "pricing_per_ft": {"cedar": 25},
            "add_ons": {"drive_gate": {"low": 700, "high": 900}},
            "defaults": {"fence_type": "vinyl"},
        }
    )
    assert set(card.fence_types) == {"vinyl", "cedar"}
    assert card.default_type == "vinyl"
    assert (card.double_gate.low, card.double_gate.high) == (700, 900)
    # Unconfigured add-ons keep the stock ranges
    assert card.walk_gate == DEFAULT_FENCE_CARD.walk_gate
    estimate = compute_fence_estimate(10, FenceSelection(fence_type="cedar"), card)
    assert estimate.breakdown["material"] == (250, 250)
