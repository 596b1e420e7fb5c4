"""
Email package.

Modules:
- core: Base send_email function (SMTP)
- sessions: booking confirmation for training sessions
"""
