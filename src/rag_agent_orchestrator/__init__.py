"""RAG Agent Orchestrator.

An asynchronous execution engine for LLM-backed tasks:
- staged pipelines (sequential stages of concurrently executed tasks)
- dynamically planned dependency graphs (DAG workflows)
- a priority-ordered retrieval-augmented answer chain with a prompt guard,
  self-correcting retrieval and trust scoring
"""

__version__ = "0.1.0"

from rag_agent_orchestrator.core.config import OrchestratorConfig

__all__ = ["__version__", "OrchestratorConfig"]
