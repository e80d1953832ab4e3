"""
Gateway transport, typed API wrappers, auth and notifications.
"""
