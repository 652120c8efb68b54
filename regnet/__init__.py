"""regnet - declarative Bitcoin/Lightning regtest networks on docker compose."""

__version__ = "1.0.0"
