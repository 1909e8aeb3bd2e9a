"""
httpctl: console control of an embedded web server's lifecycle.

The core is `httpctl.supervisor.ServiceSupervisor`, which starts, stops and
restarts one managed service and reports each result as an
`OperationOutcome`.
"""

__version__ = "0.1.0"
