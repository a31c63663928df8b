"""
clinicscheduler - appointment and resource scheduling for health professionals.
"""

__version__ = "0.1.0"
