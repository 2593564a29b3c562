"""
Notification system for the compliance digest engine.

This module handles:
- Matching incoming platform events against notification rules
- Rendering rule and digest templates
- Sending notifications through Resend or a webhook
- Writing error reports for failed sends
"""

from .error_logger import log_notification_error
from .template_renderer import render
from .trigger_evaluator import matches

__all__ = [
    'log_notification_error',
    'matches',
    'render',
]
