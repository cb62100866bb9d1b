# WORKFLOW: ETL package for sanctions source ingestion and change detection.
# Used by: Refresh trigger endpoint, refresh CLI
# Modules include:
# 1. sources.py - Static publisher configuration and parser dispatch
# 2. fetchers.py - HTTP retrieval with transport/status/read failure classes
# 3. checksum.py - SHA-256 content digests
# 4. change_detector.py - Snapshot + change-log append when content changed
# 5. parsers.py - Delimited text, HTML table scrape, opaque binary
# 6. upserter.py - Entity insert-or-update by source:name key
# 7. orchestrator.py - Tracked per-source runs and the partial-success summary
#
# ETL flow: Publisher -> Fetch -> Checksum/Detect -> Snapshot/Change log -> Parse -> Upsert -> Run closed

"""
ETL package for sanctions source ingestion.
"""
