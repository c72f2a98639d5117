"""Domain layer for canopy: pure models and forest logic, no I/O."""
