"""Field list comparison and persistence."""

from .merge import FieldListMerger, merge_field_lists
from .serialization import dump_field_list, load_field_list

__all__ = ["FieldListMerger", "merge_field_lists", "dump_field_list", "load_field_list"]
