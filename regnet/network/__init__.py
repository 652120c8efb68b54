"""Regtest network topology, container lifecycle and node APIs."""
