"""LoanDesk project package.

Tracks equipment loaned to students, flags overdue loans and escalates
repeated late returns into suspensions.
"""
