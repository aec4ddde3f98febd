"""REST server package."""

from rag_agent_orchestrator.server.app import create_app

__all__ = ["create_app"]
