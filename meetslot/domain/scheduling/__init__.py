"""
Scheduling Domain

Availability resolution and the booking commit protocol.

Structure:
- intervals.py            # TimeRange and overlap/containment/clamp helpers
- slots.py                # Availability windows -> fixed-duration candidate slots
- conflicts.py            # Booking / busy-time / past filtering (enumerate and probe)
- resolver.py             # Available slots for a day, available dates in a range
- booking_service.py      # Re-validate, best-effort calendar event, persist
- availability_service.py # Wholesale replace of a host's availability
- repository.py           # Database queries
- schemas.py              # Request/response models
- router.py               # Public and host endpoints
"""
