"""Destination plugins for influxlog."""
