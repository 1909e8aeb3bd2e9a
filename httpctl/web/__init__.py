"""
The embedded web server whose lifecycle httpctl controls.

`httpctl.web.server:app` is a Starlette application served by Hypercorn.
"""
