"""
Execution state machine module.

Holds the execution records, the pure time accounting functions, the
transition rules between NOT_STARTED → IN_PROGRESS ⇄ PAUSED → COMPLETED
(or CANCELLED), and the read-only status projection.
"""
