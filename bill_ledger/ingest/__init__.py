"""Bill export ingestion: extraction adapters and shared text helpers."""
