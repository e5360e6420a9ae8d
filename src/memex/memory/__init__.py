"""Note storage, link graph and intake queue.

A note is a markdown file ``<slug>-<id>.md``. Its title is the ``# `` heading,
its tags are the inline ``#tag`` markers and its links are ``[[id]]`` /
``[[id|alias]]`` references. Everything is derived from the text on read.
"""
