"""
Top-level package for the Yuka Discord bot.

This package hosts:
- config loading, validation and persona resolution
- storage for conversation history and the model usage ledger
- the adaptive model selector and the dispatch engine
- Discord command parsing, rendering and the client itself
"""
