"""Pass stages: grouping, edge recording, resolution, sort annotation, rewrite.

Each stage owns only the state of a single bundling pass; the orchestrator
builds a fresh set per pass.
"""
