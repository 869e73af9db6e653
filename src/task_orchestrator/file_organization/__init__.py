"""File organization pipeline: comparison windows, merge and resolution stages."""
