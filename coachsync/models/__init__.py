from coachsync.models.document import StoredDocument
