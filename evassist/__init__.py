"""
EVAssist: streaming support assistant for EV charging networks.

Layers:
- core: configuration, logging, exceptions, resilience primitives
- infrastructure: upstream charging-network client, session storage
- llm_stream: context building, model providers, tools, streaming
- application: FastAPI surface and service wiring
"""

__version__ = "1.0.0"
