"""Adapters for docker, the networks file and node APIs."""
