"""todograph - task relationship graph with a persistent undo/redo log."""

__version__ = "0.1.0"
