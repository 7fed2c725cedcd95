"""Passgate command-line client."""
