"""ForgeKit backend.

This package contains the AI usage-accounting and semantic retrieval backend
used by the ForgeKit game-content platform.

High-level architecture
-----------------------

- ``forgekit.usage``:

  - Cost calculation for the external AI providers (OpenAI, Anthropic,
    Meshy, ElevenLabs).
  - A rate limiter evaluated against the ``ai_service_calls`` ledger.
  - A metering context manager that checks limits, times a provider call and
    appends the outcome to the ledger.

- ``forgekit.embeddings``:

  - Text extraction for game content (lore, quests, NPCs, items, manifests).
  - A Qdrant-backed vector store with one collection per content type.
  - The ``ContentEmbedder`` that ties an embedding provider to the store and
    builds retrieval context for generation prompts.

- ``forgekit.server``: the FastAPI application exposing both subsystems.
"""
