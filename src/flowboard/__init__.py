"""
flowboard: hierarchical task lists with optimistic sync and AI task breakdown.

Subpackages:
- tasks: task tree model, pure tree operations, list store, mutation coordinator, AI decomposer
- storage: persistence collaborators (MongoDB via motor, in-memory)
- llm: OpenRouter-compatible client and an offline fallback
- core: ports (Protocols) and AppState
- cli / connectors: composition root, slash commands, console loop
"""
