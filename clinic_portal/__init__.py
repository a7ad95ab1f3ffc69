"""
Clinic portal identity and access control.
"""
