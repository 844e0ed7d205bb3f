"""
Immigration Services Backend
============================

REST backend for an immigration-services practice:
1. Case management with a fixed status lifecycle and audit history
2. Document metadata for case files
3. Notifications over mobile push, realtime web and email
4. Call-invitation signaling through the realtime database
"""

__version__ = "1.0.0"
