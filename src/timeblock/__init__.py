"""
timeblock: plan a day as time blocks and get alerted at the transitions.

Components:
- core/: wall-clock arithmetic, ports (Protocols), app state
- tasks/: task models, SQLite store, occurrence engine, warning scheduler,
  edit/drag mutation helpers, live progress snapshots
- notify/: alert sink (bell, speech, console, desktop notification)
- tts/: optional spoken alerts
- cli/ + connectors/: composition root, slash commands, console REPL
"""

__version__ = "0.1.0"
