"""
Recurrence subsystem.

Components:
- models.py: RecurrencePattern, RecurrenceType
- calculator.py: next-occurrence date math (pure)
- pattern_store.py: CRUD + persistence for patterns
- monitor.py: polling loop that turns due patterns into task instances
"""
