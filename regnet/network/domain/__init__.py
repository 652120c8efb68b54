"""Topology models and pure operations."""
