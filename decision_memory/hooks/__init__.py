"""Hook handlers for the host's SessionStart, PreCompact and UserPromptSubmit events.

Each invocation is a fresh, short-lived process: the dispatcher reads one
JSON document from stdin, runs the handler, and writes one JSON document to
stdout.  Continuity between invocations lives in the session env record.
"""
