"""
Ticket Engine - Order Construction and Transaction Execution Engine

Derives exchange-accurate order parameters from loose order-ticket input,
encodes them to instrument precision, and drives every money-moving action
through a shared form/confirm/pending/success/error step machine.
"""

__version__ = "0.1.0"
__author__ = "Ticket Engine Team"
