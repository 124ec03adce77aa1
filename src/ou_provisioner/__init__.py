"""Idempotent provisioning of per-tenant organizational units in Active Directory.

This package exposes helpers for configuration loading, directory access over
LDAP, audit logging, and the tenant provisioning driver.
"""
