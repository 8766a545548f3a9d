"""
clinicslots - clinic appointment availability, booking and reminders.
"""

__version__ = "0.1.0"
