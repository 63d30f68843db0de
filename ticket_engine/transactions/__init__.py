"""
Transaction step machine module.

Drives every money-moving action through form → confirm → pending →
success/error with confirmation bypass, single-submission guarding and
delayed account refresh.
"""
