"""Chat-completion provider adapters (OpenAI, Anthropic).

Both adapters share one contract (``base.ProviderAdapter``) and talk HTTP
only through an injected ``Transport``.
"""
