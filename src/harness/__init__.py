"""Version-compatibility harness.

This package captures scenario snapshots with the current SDK and
replays snapshots from earlier SDK versions against it.
"""
