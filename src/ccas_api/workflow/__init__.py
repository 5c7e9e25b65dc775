"""
CCAS Workflow Module

Approval workflow for Plant Code and Company Code requests:
- Versioned request details with change detection between versions
- Fixed approval chain (secretarial, three finance approvers, IT)
- Approval ledger and append-only history log
- Daily request ID allocation
- Email notifications on version saves and status changes
"""

__version__ = "1.0.0"
