"""
Gamebook - Deterministic Narrative Engine

A deterministic, content-driven runtime for branching gamebooks.
The engine loads scene content (a manifest plus one JSON file per scene) and provides:
- State management (stats, flags, inventory, factions, history)
- Condition evaluation and effect application
- Scene transitions with save/load
- Reachability and cycle validation of the scene graph
- Headless scripted playthroughs with softlock detection
"""

__version__ = "0.1.0"
