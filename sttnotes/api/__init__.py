"""
HTTP surface for sttnotes.

Design intent:
- Keep request handling thin: authenticate, validate, delegate to the pipeline.
- Answer every request with a definitive `success` payload.
"""
