"""
Calendar sync subsystem.

Components:
- mapping_store.py: persisted local task id -> remote event id table
- reconciler.py: one create/update/delete pass against the remote calendar
- scheduler.py: enable/disable + periodic passes
- google_calendar.py: Google Calendar v3 client implementing the calendar port
"""
