"""TaskMaster: personal to-do list with LLM-assisted prioritization."""

__version__ = "0.3.0"
