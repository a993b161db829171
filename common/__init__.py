"""Shared constants, types and logging for kiss-drop components."""
