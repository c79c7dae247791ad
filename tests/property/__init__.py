"""Property-based tests for process graph parsing, compatibility and execution."""
