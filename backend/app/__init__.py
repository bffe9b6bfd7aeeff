"""
Barangay records backend: resident information update requests and notifications.
"""
