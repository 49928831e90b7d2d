"""Salon walk-in queue service (MQTT-based).

Customers join a barber's walk-in line; the barber starts and completes
entries. The package coordinates:
- a queue state machine (join / start / complete) over a queue store
- position assignment and repair after completions
- best-effort WhatsApp / SMS notifications
- a per-barber change feed, projected per viewer (other customers' names hidden)

Run `python -m walkin_queue.app -h` for the command-line entrypoint.
"""
