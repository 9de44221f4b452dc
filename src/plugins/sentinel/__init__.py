"""
Microsoft Sentinel resources.

Reconcilers for Sentinel alert rules and the Security Insights client
they share.
"""
