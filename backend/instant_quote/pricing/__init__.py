from .catalog import SERVICE_KEYS, SERVICE_LABELS, migrate_service_keys
from .engine import Quote, QuoteLineItem, compute_quote, format_currency, service_price
from .fence import FenceEstimate, FenceSelection, compute_fence_estimate
from .rates import DEFAULT_BLOCK_CARD, DEFAULT_TIER_TABLE, MAX_MEASUREMENT, get_rate_card, normalize_measurement, round_currency
