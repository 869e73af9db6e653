"""Operator tooling for inspecting and rerunning file organization runs."""
