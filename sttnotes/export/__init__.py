"""
Clinical document publishing for sttnotes.

Design intent:
- Create one shareable document per session note.
- Compute heading emphasis on the plain text before any styling is applied.
"""
