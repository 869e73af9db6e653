"""Task Orchestrator - status state machine and file organization pipeline for task runs."""
