"""
sttnotes service package.

Design intent:
- Turn one recorded therapy session into a transcript, a filled clinical note and a shared document.
- Keep each pipeline stage (audio/asr/note/export) independent and injectable.
"""
