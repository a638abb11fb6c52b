"""Gateway to the remote (multi-device) store.

- base: RemoteStore interface and error taxonomy
- client: httpx client for the NoteMemo REST API
- remote_store: RemoteStore implementation over the REST API
"""
