"""Application layer: orchestration services used by the CLI."""
