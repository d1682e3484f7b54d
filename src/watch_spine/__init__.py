"""
watch-spine: periodic watch-confirmation scheduler.

For each enrolled subject, every tick decides whether to send a check-in,
re-send a reminder, escalate to a responsible party, or do nothing, based
only on persisted timestamps and an "awaiting reply" flag. Overlapping
ticks are excluded by a self-expiring lock and per-subject
compare-and-patch writes; delivery is fail-open.

Layout:
    core/        settings, logging, errors, time helpers
    store/       subject and lock stores (memory, SQLite)
    notify/      dispatcher and delivery channels
    watch/       state machine, target selection, escalation gating
    scheduling/  lock manager, tick service, thread backend
    cli/         ``watch-spine`` command
"""

__version__ = "0.1.0"
