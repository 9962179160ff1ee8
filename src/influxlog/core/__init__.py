"""Core building blocks: events, levels, points, translation and batching."""
