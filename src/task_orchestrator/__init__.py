"""Task orchestration and file organization pipeline."""
