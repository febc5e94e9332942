"""registry/ -- Crate index, archive and ownership layout on top of an ObjectStore.

Layer rule: registry/ imports from core/ and storage/ only. It knows nothing
about authorization; callers check AuthPolicy before calling in.
"""
