"""Attendance Tracker package.

Organized by feature modules (attendance, users, reports) with a thin Flask
controller layer over service/repository layers.
"""
