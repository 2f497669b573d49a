"""Member role enum for role-based access control."""

from enum import Enum as PyEnum


class MemberRole(str, PyEnum):
    """
    Mess membership roles with hierarchical permissions.

    Role Hierarchy (highest to lowest):
    1. ADMIN - Manages the mess: rates, members, approvals, locks, overrides
    2. STAFF - Kitchen/desk staff: enters meals for others, scans QR codes,
       locks meals and records bazar purchases
    3. MEMBER - Enters own meals, records own purchases/expenses/payments

    The mess manager (Mess.manager_id) always acts as ADMIN.
    """

    ADMIN = "admin"
    STAFF = "staff"
    MEMBER = "member"
