"""Domain services for task orchestration."""
