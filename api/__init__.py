"""
HTTP server for the credential service and the message log.
"""
