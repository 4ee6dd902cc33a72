"""Loan module for LoanDesk.

This module tracks equipment and the loans made against it,
deriving overdue and late status from the due time at read time.
"""
