"""
Bookings domain - appointment scheduling for the clinic.

- conflicts.py      Slot conflict checker (half-open interval overlap)
- state_machine.py  Lifecycle transitions and who may invoke them
- policy.py         Caller role resolution and field-level update rules
- repository.py     Database operations; sole writer of booking rows
- service.py        Inbound operations used by the API
- events.py         Outbound booking.* events
- router.py         FastAPI endpoints
"""
