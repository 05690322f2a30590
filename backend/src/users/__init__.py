"""User directory: identity store, search index and auxiliary lookups."""
