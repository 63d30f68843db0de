"""
Order construction module.

Derives order size, notional and execution price from ticket input, validates
take-profit/stop-loss levels and assembles the exchange payloads submitted in
sequence.
"""
