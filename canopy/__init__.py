"""canopy - tree synchronization, drag/reparent and deep-clone engine
for hierarchical project data."""

__version__ = "0.1.0"
