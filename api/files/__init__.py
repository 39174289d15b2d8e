"""
Files module - file metadata listing and inline editing for parent records.

list_files resolves the latest version of each file attached to a parent;
FileUpdateReconciler applies batches of partial edits through a FileStore.
"""
