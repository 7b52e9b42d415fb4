"""Work item services built on the TFS client."""

from .bulk_edit import BulkFieldEditor

__all__ = ["BulkFieldEditor"]
