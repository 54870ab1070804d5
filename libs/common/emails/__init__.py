"""
Shared email package.

Modules:
- core: Base send_email function (SMTP, optional PDF attachment)
"""
