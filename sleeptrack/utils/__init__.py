"""Time and formatting helpers"""
