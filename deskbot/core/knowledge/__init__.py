"""Business knowledge base (FAQ documents)."""
