"""
Relational Kernel - aggregate delete batching

Collects the delete actions produced while cascading a delete through
tree-shaped aggregates and replays them:
- Locks first, in arrival order
- Nested rows leaf to root, grouped by property path
- Root rows last, grouped by expected version
- Same-shape actions merged into batch actions
"""

__version__ = "0.1.0"
