"""
Administrative tooling for Team Foundation Server / Azure DevOps Server.
Enumerates collections, projects, queries and fields, compares field lists
and bulk-edits work item field values.
"""

__version__ = "1.0.0"
