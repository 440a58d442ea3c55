"""
Atelier Kernel

The approval and workflow core of the studio project tracker:
- Approval rules (global and per-project) with multi-level chains
- Approval requests with an append-only history
- Workflow rules that gate stage completion
- Whole-collection JSON snapshots behind a key-value persistence port
"""

__version__ = "0.1.0"
