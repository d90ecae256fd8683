"""
API Blueprints Package

All HTTP route handlers, organized by domain.
Each module defines a Flask Blueprint registered in app/__init__.py.

BLUEPRINT REFERENCE:
====================

Voice intake (machine-to-machine, X-API-Key):
- intake.py        : start call, per-turn state machine, finalize into a ticket

Dashboard (X-User-Id):
- calls.py         : call list/detail, dashboard stats
- tickets.py       : dispatch board, ticket status moves
- settings.py      : firm settings, voice agent sync
- twilio_routes.py : number webhook setup (plus the Twilio callbacks themselves)
- email_preview.py : ticket email preview and test send

Shared:
- common.py        : current firm lookup, JSON body helpers
"""

# All blueprints are imported and registered in app/__init__.py
# This file serves as documentation only

__all__ = []
