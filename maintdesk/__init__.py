"""Hotel maintenance desk.

Tracks maintenance tickets through their lifecycle, ranks them by a derived
priority score, and keeps a parts inventory with reservations, consumption,
purchase orders and an append-only movement ledger. ``maintdesk.main`` wires
the FastAPI application; ``maintdesk.services.commands`` is the command
surface every caller goes through.
"""
