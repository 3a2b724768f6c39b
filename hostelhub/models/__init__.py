"""
Domain logic for the hostel hub documents.

Each module works on plain document dicts as stored in MongoDB: builders
for new documents, status transitions that mutate and return the
document, and ``present_*`` functions that add derived read-only fields.
Persistence lives in ``hostelhub.repositories``.
"""
