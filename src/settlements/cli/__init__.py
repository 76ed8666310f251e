"""
Command Line Interface Package

Entry point `settlements` with utility commands (version, config, status),
ingestion commands (sync, reparse) and reporting commands (summary, daily,
export).
"""
