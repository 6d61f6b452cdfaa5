"""Business logic of the drive: paths, lifecycle, quota and cache rules."""
