"""File I/O, state store and batch session tools."""
