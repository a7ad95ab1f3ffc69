"""
Authentication module for the clinic portal.

This module provides authentication and account lifecycle functionality including:
- Admin provisioning of staff and patient accounts with temporary passwords
- Forced password change after provisioning or admin reset
- Patient self-registration
- Staff (email) and patient (national id) login with session cookies
- Role-based access control for the JSON API
"""
