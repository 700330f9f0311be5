"""Core task storage and graph logic for cairn."""
