"""User-facing interfaces for filevault."""
