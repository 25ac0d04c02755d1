"""
Clinical-note drafting for sttnotes.

Design intent:
- Resolve a domain template from the therapist's session metadata.
- Ask a generative model for a labelled dialogue and a filled note.
- Hold the model to a strict two-field JSON contract.
"""
