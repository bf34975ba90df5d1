"""Pydantic schemas for the PhonePe wire format and the payments API."""
