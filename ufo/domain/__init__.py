"""
UFO Domain Layer.

Entities (UploadFile, Chunk), the status model, domain events and the
interfaces of external collaborators (transport, data sources).
"""
