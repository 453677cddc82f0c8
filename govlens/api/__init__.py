"""
govlens HTTP API

FastAPI application serving the JSON-RPC interface.
"""
