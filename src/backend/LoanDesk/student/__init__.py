"""Student module for LoanDesk.

Holds the student register together with the risk engine: trust scores,
escalating warning thresholds, the at-risk scan, suspensions and
dismissed alerts.
"""
