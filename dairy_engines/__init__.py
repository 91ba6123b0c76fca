"""
Dairy Engines -- pure calculation functions.

No I/O, no Session, no Clock: callers pass every fact in.
    schedule   -- delivery due-date policy and schedule parsing
    invoicing  -- billing periods, invoice numbers, payment settlement
    lactation  -- herd lactation-status rules
"""
