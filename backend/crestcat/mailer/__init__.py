"""
Email Package

This package handles email dispatch and templating.
"""

from crestcat.mailer.service import EmailService, email_service, render_template

__all__ = ["EmailService", "email_service", "render_template"]
