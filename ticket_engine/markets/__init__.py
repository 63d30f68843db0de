"""
Market metadata module.

Instrument catalog models, price and size precision rules, tick sizes and the
asset identifier encoding used by every exchange action.
"""
