"""NoteMemo sync REST API package.

Sub-modules expose FastAPI routers for each collection:
- notes: incremental read and batch upsert of notes
- categories: incremental read and full-set replace of categories
- sync: sync switch, user identity and per-device sync times
"""
