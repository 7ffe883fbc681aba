"""Command-line interface for corpuschat.

- ``corpuschat chat <kind> <descriptor>`` ingests a source, then opens an
  interactive question loop.
- ``corpuschat ingest <kind> <descriptor>`` ingests and exits.
- ``corpuschat stats`` / ``corpuschat purge`` inspect or drop a collection.

Heavy imports (provider SDKs, the vector store) are deferred inside the
handlers so ``--help`` stays fast.
"""
