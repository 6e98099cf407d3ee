"""File upload and storage module.

Stores uploaded blobs on local disk under the configured upload directory
and exposes them back through a static mount. The chat core never reads
file content; it only relays the URL and metadata returned here.
"""
