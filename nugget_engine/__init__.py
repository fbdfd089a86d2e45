"""
nugget-engine - content normalization and media classification for nuggets.

This package turns raw user submissions into canonical content records:
- normalization: tags, image dedup, media classification, card type, orchestrator
- enrichment: link preview collaborator (oEmbed / Open Graph)
- storage: persistence read/write contract (in-memory, Supabase)
- models: Pydantic data model
- config: Pydantic settings
- core: exceptions, diagnostics, circuit breaker, logging
"""

__version__ = "0.1.0"
