"""
SmartCare Clinic API

A FastAPI-based backend for a role-based clinic: appointment lifecycle,
per-doctor patient queues and role-gated dashboard navigation.
"""

__version__ = "1.0.0"
