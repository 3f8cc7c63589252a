from .quote_session import SESSION_SCHEMA_VERSION, LeadDetails, QuoteSession, normalize_address

__all__ = ["SESSION_SCHEMA_VERSION", "LeadDetails", "QuoteSession", "normalize_address"]
