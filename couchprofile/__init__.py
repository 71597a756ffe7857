"""CouchDB-backed profile record store.

To use the profile service:
    from couchprofile.core.profile_service import CouchProfileService

To use the CouchDB client directly:
    from couchprofile.core.couchdb import CouchClient, DocumentCodec

To load configuration from the environment:
    from couchprofile.config import load_settings
"""
