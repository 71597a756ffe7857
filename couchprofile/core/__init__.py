"""Core persistence logic.

Module Structure:
    - couchdb/            : CouchDB HTTP client, payload codec, view naming
    - profile_service.py  : Revision-safe insert/update/delete/read of profile records
"""
