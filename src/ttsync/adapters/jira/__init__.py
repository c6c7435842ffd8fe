"""
Jira Adapter - Read-only access to Jira for subticket discovery.
"""

from .client import JiraApiClient


__all__ = ["JiraApiClient"]
